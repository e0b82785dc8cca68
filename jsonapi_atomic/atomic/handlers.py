from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from jsonapi_atomic.atomic.contracts import (
    ExecutionContext,
    RelationshipMutator,
    ResourceCreator,
    ResourceDeleter,
    ResourceUpdater,
)
from jsonapi_atomic.atomic.operation import ChangeSet, ResourceIdentifier
from jsonapi_atomic.core.exceptions import UnsupportedOperationError


@dataclass(frozen=True)
class ResourceHandlers:
    """Collaborators that mutate one resource type."""
    creator: ResourceCreator
    updater: ResourceUpdater
    deleter: ResourceDeleter
    relationships: RelationshipMutator


class UnimplementedHandlers:
    """Stands in for a resource type without bound handlers and rejects every mutation."""

    def __init__(self, resource_type: str):
        self.resource_type = resource_type

    def bundle(self) -> ResourceHandlers:
        return ResourceHandlers(creator=self, updater=self, deleter=self, relationships=self)

    def _reject(self, action: str) -> UnsupportedOperationError:
        return UnsupportedOperationError(
            f'Resource type "{self.resource_type}" does not support {action}.'
        )

    async def create(
        self,
        context: ExecutionContext,
        resource_type: str,
        changes: ChangeSet,
        client_id: Optional[str] = None,
    ) -> Any:
        raise self._reject("creation")

    async def update(self, context: ExecutionContext, resource_type: str, resource_id: str, changes: ChangeSet) -> Any:
        raise self._reject("updates")

    async def delete(self, context: ExecutionContext, resource_type: str, resource_id: str) -> None:
        raise self._reject("deletion")

    async def append(
        self,
        context: ExecutionContext,
        resource_type: str,
        resource_id: str,
        relationship: str,
        identifiers: List[ResourceIdentifier],
    ) -> None:
        raise self._reject("relationship changes")

    async def replace_to_many(
        self,
        context: ExecutionContext,
        resource_type: str,
        resource_id: str,
        relationship: str,
        identifiers: List[ResourceIdentifier],
    ) -> None:
        raise self._reject("relationship changes")

    async def detach(
        self,
        context: ExecutionContext,
        resource_type: str,
        resource_id: str,
        relationship: str,
        identifiers: List[ResourceIdentifier],
    ) -> None:
        raise self._reject("relationship changes")

    async def replace_to_one(
        self,
        context: ExecutionContext,
        resource_type: str,
        resource_id: str,
        relationship: str,
        identifier: Optional[ResourceIdentifier],
    ) -> None:
        raise self._reject("relationship changes")


class HandlerRegistry:
    """Resource type name to the handlers that mutate it, resolved once at startup."""

    def __init__(self, handlers: Optional[Dict[str, ResourceHandlers]] = None):
        self._handlers: Dict[str, ResourceHandlers] = dict(handlers or {})

    def bind(self, resource_type: str, handlers: ResourceHandlers) -> None:
        self._handlers[resource_type] = handlers

    def get(self, resource_type: str) -> ResourceHandlers:
        handlers = self._handlers.get(resource_type)
        if handlers is None:
            return UnimplementedHandlers(resource_type).bundle()
        return handlers
