"""
Natours Backend — User Model
=============================

Passwords are stored as werkzeug hashes. `password_changed_at` lets the
authentication layer reject tokens issued before the latest password change;
`active=False` marks a self-deleted account that queries must skip.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from werkzeug.security import check_password_hash, generate_password_hash

from natours.database import Base

ROLES = ("user", "guide", "lead-guide", "admin")


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    photo: Mapped[str] = mapped_column(String(255), default="default.jpg", nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="user", nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    password_changed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def set_password(self, password: str, *, changed: bool = False) -> None:
        self.password_hash = generate_password_hash(password)
        if changed:
            # Backdated one second so a token signed right after the change
            # still counts as issued after it
            self.password_changed_at = datetime.fromtimestamp(
                datetime.now(timezone.utc).timestamp() - 1, tz=timezone.utc
            )

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def changed_password_after(self, issued_at: int) -> bool:
        """True when the password changed after a token issued at `issued_at` (epoch seconds)."""
        if self.password_changed_at is None:
            return False
        changed = self.password_changed_at
        if changed.tzinfo is None:
            # SQLite hands back naive datetimes; they were written as UTC
            changed = changed.replace(tzinfo=timezone.utc)
        return issued_at < int(changed.timestamp())

    def __repr__(self) -> str:
        return f"<User {self.email!r} ({self.role})>"
