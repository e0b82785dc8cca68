# Models module - Import all models here so metadata.create_all discovers them
from jsonapi_atomic.models.author import Author
from jsonapi_atomic.models.article import Article, article_tags
from jsonapi_atomic.models.comment import Comment
from jsonapi_atomic.models.tag import Tag

__all__ = [
    "Author",
    "Article",
    "article_tags",
    "Comment",
    "Tag",
]
