from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from jsonapi_atomic.models.base import ResourceBase


class Author(ResourceBase):
    """Author of articles and comments."""
    __tablename__ = "authors"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
