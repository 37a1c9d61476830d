"""
Natours Backend — Middleware Package
=====================================

Cross-cutting request stages applied to every request before routing.
The execution order is defined in one place, `pipeline.pipeline_stages`:

    Request → CORS → Security headers → [Access log] → Rate limit (/api)
            → Body (raw | parsed) → Cookies → Injection sanitization
            → Script sanitization → Parameter pollution → Compression
            → Timestamp → Error boundary → Router

Responses travel back out in reverse order.
"""

from natours.middleware.pipeline import Stage, install_pipeline, pipeline_stages

__all__ = ["Stage", "install_pipeline", "pipeline_stages"]
