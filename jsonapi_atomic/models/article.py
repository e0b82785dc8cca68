from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import Column, ForeignKey, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jsonapi_atomic.database import Base
from jsonapi_atomic.models.base import ResourceBase

if TYPE_CHECKING:
    from jsonapi_atomic.models.tag import Tag


article_tags = Table(
    "article_tags",
    Base.metadata,
    Column("article_gid", String(32), ForeignKey("articles.gid", ondelete="CASCADE"), primary_key=True),
    Column("tag_gid", String(32), ForeignKey("tags.gid", ondelete="CASCADE"), primary_key=True),
)


class Article(ResourceBase):
    """Article written by an author and labeled with tags."""
    __tablename__ = "articles"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Foreign keys
    author_gid: Mapped[Optional[str]] = mapped_column(
        String(32),
        ForeignKey("authors.gid", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Relationships
    tags: Mapped[List["Tag"]] = relationship(
        "Tag",
        secondary=article_tags,
        back_populates="articles",
        lazy="selectin",
        order_by="Tag.name",
    )
