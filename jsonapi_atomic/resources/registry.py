from dataclasses import dataclass, field
from typing import Dict, Iterable, Tuple, Type

from jsonapi_atomic.models import Article, Author, Comment, Tag
from jsonapi_atomic.models.base import ResourceBase


@dataclass(frozen=True)
class RelationshipMetadata:
    """
    A relationship exposed on a resource type.

    `attribute` is the ORM attribute that stores it: the foreign key column
    for to-one relationships, the collection for to-many relationships.
    """
    name: str
    target_type: str
    to_many: bool
    attribute: str


@dataclass(frozen=True)
class ResourceMetadata:
    type: str
    model: Type[ResourceBase]
    attributes: Tuple[str, ...]
    relationships: Dict[str, RelationshipMetadata] = field(default_factory=dict)
    id_attribute: str = "gid"


class ResourceRegistry:
    """Resource types known to the API, keyed by JSON:API type name."""

    def __init__(self, resources: Iterable[ResourceMetadata] = ()):
        self._resources: Dict[str, ResourceMetadata] = {}
        for metadata in resources:
            self.register(metadata)

    def register(self, metadata: ResourceMetadata) -> None:
        if metadata.type in self._resources:
            raise ValueError(f'Resource type "{metadata.type}" is already registered.')
        self._resources[metadata.type] = metadata

    def has_type(self, resource_type: str) -> bool:
        return resource_type in self._resources

    def get(self, resource_type: str) -> ResourceMetadata:
        return self._resources[resource_type]

    def types(self) -> Tuple[str, ...]:
        return tuple(self._resources)


def build_registry() -> ResourceRegistry:
    """Resource types of the blog domain."""
    return ResourceRegistry([
        ResourceMetadata(
            type="authors",
            model=Author,
            attributes=("name", "email"),
        ),
        ResourceMetadata(
            type="articles",
            model=Article,
            attributes=("title", "body"),
            relationships={
                "author": RelationshipMetadata("author", "authors", to_many=False, attribute="author_gid"),
                "tags": RelationshipMetadata("tags", "tags", to_many=True, attribute="tags"),
            },
        ),
        ResourceMetadata(
            type="comments",
            model=Comment,
            attributes=("body",),
            relationships={
                "article": RelationshipMetadata("article", "articles", to_many=False, attribute="article_gid"),
                "author": RelationshipMetadata("author", "authors", to_many=False, attribute="author_gid"),
            },
        ),
        ResourceMetadata(
            type="tags",
            model=Tag,
            attributes=("name",),
        ),
    ])
