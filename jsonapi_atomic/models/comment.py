from typing import Optional

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jsonapi_atomic.models.base import ResourceBase


class Comment(ResourceBase):
    """Comment on an article."""
    __tablename__ = "comments"

    body: Mapped[str] = mapped_column(Text, nullable=False)

    # Foreign keys
    article_gid: Mapped[Optional[str]] = mapped_column(
        String(32),
        ForeignKey("articles.gid", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    author_gid: Mapped[Optional[str]] = mapped_column(
        String(32),
        ForeignKey("authors.gid", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
