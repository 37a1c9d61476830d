"""
Natours Backend — Application Package
======================================

Tour booking backend: a JSON API and server-rendered views over tours,
users, reviews and bookings.

    ┌─────────────────────────────────────┐
    │   Supervisor (natours.server)       │  ← process lifecycle, signals
    ├─────────────────────────────────────┤
    │   Pipeline (natours.middleware)     │  ← ordered request stages
    ├─────────────────────────────────────┤
    │   Router + Routes (natours.routes)  │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (natours.services)       │  ← business rules
    ├─────────────────────────────────────┤
    │   Models & Schemas                  │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Database (natours.database)       │  ← async sessions
    └─────────────────────────────────────┘

Errors from every layer end in natours.errors.handle_exception.
"""

__version__ = "1.0.0"
