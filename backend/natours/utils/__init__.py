"""Small helpers shared by the pipeline and the services."""
