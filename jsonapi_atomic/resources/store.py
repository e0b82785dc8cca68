import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from jsonapi_atomic.atomic.contracts import ExecutionContext
from jsonapi_atomic.atomic.handlers import HandlerRegistry, ResourceHandlers
from jsonapi_atomic.atomic.operation import ChangeSet, Linkage, ResourceIdentifier
from jsonapi_atomic.core.exceptions import ConflictError, NotFoundError
from jsonapi_atomic.core.identifiers import generate_gid
from jsonapi_atomic.resources.registry import ResourceMetadata, ResourceRegistry


logger = logging.getLogger(__name__)


class SQLAlchemyResourceStore:
    """
    Create, update, delete and relationship mutation on an AsyncSession.

    The session is the one of the running batch (taken from the execution
    context). Every mutation is flushed immediately so that constraint
    violations are reported by the operation that caused them; committing
    is left to the transaction manager.
    """

    def __init__(self, registry: ResourceRegistry):
        self.registry = registry

    async def create(
        self,
        context: ExecutionContext,
        resource_type: str,
        changes: ChangeSet,
        client_id: Optional[str] = None,
    ) -> Any:
        metadata = self.registry.get(resource_type)
        session = context.session

        if client_id is not None:
            existing = await session.get(metadata.model, client_id)
            if existing is not None:
                raise ConflictError(
                    f'Resource "{resource_type}" with id "{client_id}" already exists.'
                )

        instance = metadata.model(**changes.attributes)
        setattr(instance, metadata.id_attribute, client_id or generate_gid())
        for relationship in metadata.relationships.values():
            if relationship.to_many:
                setattr(instance, relationship.attribute, [])

        await self._apply_relationships(session, metadata, instance, changes.relationships)
        session.add(instance)
        await self._flush(session, resource_type)

        logger.debug("Created %s %s", resource_type, getattr(instance, metadata.id_attribute))
        return instance

    async def update(
        self,
        context: ExecutionContext,
        resource_type: str,
        resource_id: str,
        changes: ChangeSet,
    ) -> Any:
        metadata = self.registry.get(resource_type)
        session = context.session
        instance = await self._get(session, metadata, resource_id)

        for name, value in changes.attributes.items():
            setattr(instance, name, value)
        await self._apply_relationships(session, metadata, instance, changes.relationships)
        await self._flush(session, resource_type)

        return instance

    async def delete(self, context: ExecutionContext, resource_type: str, resource_id: str) -> None:
        metadata = self.registry.get(resource_type)
        session = context.session
        instance = await self._get(session, metadata, resource_id)

        await session.delete(instance)
        await self._flush(session, resource_type)

    async def append(
        self,
        context: ExecutionContext,
        resource_type: str,
        resource_id: str,
        relationship: str,
        identifiers: List[ResourceIdentifier],
    ) -> None:
        metadata = self.registry.get(resource_type)
        session = context.session
        instance = await self._get(session, metadata, resource_id)
        attribute = metadata.relationships[relationship].attribute

        collection = getattr(instance, attribute)
        for target in await self._load_targets(session, identifiers):
            if target not in collection:
                collection.append(target)
        await self._flush(session, resource_type)

    async def replace_to_many(
        self,
        context: ExecutionContext,
        resource_type: str,
        resource_id: str,
        relationship: str,
        identifiers: List[ResourceIdentifier],
    ) -> None:
        metadata = self.registry.get(resource_type)
        session = context.session
        instance = await self._get(session, metadata, resource_id)
        attribute = metadata.relationships[relationship].attribute

        setattr(instance, attribute, await self._load_targets(session, identifiers))
        await self._flush(session, resource_type)

    async def detach(
        self,
        context: ExecutionContext,
        resource_type: str,
        resource_id: str,
        relationship: str,
        identifiers: List[ResourceIdentifier],
    ) -> None:
        metadata = self.registry.get(resource_type)
        session = context.session
        instance = await self._get(session, metadata, resource_id)
        attribute = metadata.relationships[relationship].attribute

        collection = getattr(instance, attribute)
        for target in await self._load_targets(session, identifiers):
            if target in collection:
                collection.remove(target)
        await self._flush(session, resource_type)

    async def replace_to_one(
        self,
        context: ExecutionContext,
        resource_type: str,
        resource_id: str,
        relationship: str,
        identifier: Optional[ResourceIdentifier],
    ) -> None:
        metadata = self.registry.get(resource_type)
        session = context.session
        instance = await self._get(session, metadata, resource_id)
        attribute = metadata.relationships[relationship].attribute

        if identifier is not None:
            await self._get(session, self.registry.get(identifier.type), identifier.id)
        setattr(instance, attribute, identifier.id if identifier is not None else None)
        await self._flush(session, resource_type)

    async def _get(self, session: AsyncSession, metadata: ResourceMetadata, resource_id: str) -> Any:
        instance = await session.get(metadata.model, resource_id)
        if instance is None:
            raise NotFoundError(metadata.type, resource_id)
        return instance

    async def _load_targets(self, session: AsyncSession, identifiers: List[ResourceIdentifier]) -> List[Any]:
        """Load linkage targets in request order, failing on the first unknown one."""
        if not identifiers:
            return []

        found: Dict[tuple, Any] = {}
        by_type: Dict[str, List[str]] = {}
        for identifier in identifiers:
            by_type.setdefault(identifier.type, []).append(identifier.id)

        for target_type, ids in by_type.items():
            metadata = self.registry.get(target_type)
            column = getattr(metadata.model, metadata.id_attribute)
            result = await session.execute(select(metadata.model).where(column.in_(set(ids))))
            for target in result.scalars().all():
                found[(target_type, getattr(target, metadata.id_attribute))] = target

        targets = []
        for identifier in identifiers:
            target = found.get((identifier.type, identifier.id))
            if target is None:
                raise NotFoundError(identifier.type, identifier.id)
            if target not in targets:
                targets.append(target)
        return targets

    async def _apply_relationships(
        self,
        session: AsyncSession,
        metadata: ResourceMetadata,
        instance: Any,
        relationships: Dict[str, Linkage],
    ) -> None:
        for name, linkage in relationships.items():
            relationship = metadata.relationships[name]
            if relationship.to_many:
                targets = await self._load_targets(session, linkage or [])
                setattr(instance, relationship.attribute, targets)
            elif linkage is None:
                setattr(instance, relationship.attribute, None)
            else:
                await self._get(session, self.registry.get(linkage.type), linkage.id)
                setattr(instance, relationship.attribute, linkage.id)

    @staticmethod
    async def _flush(session: AsyncSession, resource_type: str) -> None:
        try:
            await session.flush()
        except IntegrityError as exc:
            raise ConflictError(
                f'The change to "{resource_type}" violates a data constraint: {exc.orig}'
            ) from exc


def build_handler_registry(registry: ResourceRegistry) -> HandlerRegistry:
    """Bind every registered resource type to the SQLAlchemy store."""
    store = SQLAlchemyResourceStore(registry)
    bundle = ResourceHandlers(creator=store, updater=store, deleter=store, relationships=store)
    return HandlerRegistry({resource_type: bundle for resource_type in registry.types()})
