from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from jsonapi_atomic.database import Base
from jsonapi_atomic.core.identifiers import generate_gid


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    """Mixin for created_at and modified_at timestamps."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False,
    )


class GIDMixin:
    """Mixin for GID (Global ID) field."""
    gid: Mapped[str] = mapped_column(
        String(32),
        primary_key=True,
        default=generate_gid,
        index=True,
    )


class ResourceBase(Base, GIDMixin, TimestampMixin):
    """Base class for all models exposed as JSON:API resources."""
    __abstract__ = True
