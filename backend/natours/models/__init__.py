"""
Natours Backend — ORM Models
=============================

Importing this package registers every table on Base.metadata (used by
Database.create_all and by Alembic autogenerate).
"""

from natours.models.booking import Booking
from natours.models.review import Review
from natours.models.tour import Tour
from natours.models.user import User

__all__ = ["Booking", "Review", "Tour", "User"]
