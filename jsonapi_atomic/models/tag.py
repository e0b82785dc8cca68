from typing import List, TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jsonapi_atomic.models.base import ResourceBase

if TYPE_CHECKING:
    from jsonapi_atomic.models.article import Article


class Tag(ResourceBase):
    """Tag model for labeling articles."""
    __tablename__ = "tags"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    # Relationships
    articles: Mapped[List["Article"]] = relationship(
        "Article",
        secondary="article_tags",
        back_populates="tags",
        lazy="selectin",
    )
