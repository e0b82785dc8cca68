import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import DataError, DBAPIError, SQLAlchemyError, StatementError
from sqlalchemy.ext.asyncio import AsyncSession

from jsonapi_atomic.atomic.contracts import ExecutionContext, TransactionManager
from jsonapi_atomic.atomic.handlers import HandlerRegistry, ResourceHandlers
from jsonapi_atomic.atomic.lid import LidRegistry
from jsonapi_atomic.atomic.operation import (
    ChangeSet,
    Linkage,
    Operation,
    OperationType,
    Ref,
    ResourceIdentifier,
)
from jsonapi_atomic.core.exceptions import ExecutionFailure, InvalidValueError
from jsonapi_atomic.resources.registry import ResourceRegistry


logger = logging.getLogger(__name__)


def is_invalid_value(exc: SQLAlchemyError) -> bool:
    """Errors caused by a value the column cannot hold, rather than by the database."""
    if isinstance(exc, DataError):
        return True
    # Raised while binding parameters, before the statement reached the driver.
    return isinstance(exc, StatementError) and not isinstance(exc, DBAPIError)


@dataclass(frozen=True)
class OperationOutcome:
    """Result of one operation: empty, or the resource it produced."""
    type: Optional[str] = None
    id: Optional[str] = None
    model: Any = None

    @classmethod
    def empty(cls) -> "OperationOutcome":
        return cls()

    @classmethod
    def for_resource(cls, resource_type: str, resource_id: str, model: Any) -> "OperationOutcome":
        return cls(type=resource_type, id=resource_id, model=model)

    @property
    def has_data(self) -> bool:
        return self.type is not None


class OperationDispatcher:
    """
    Execute a validated batch as one transaction.

    Operations run strictly in request order. Each `add` that declared a
    local identifier records the identifier the server assigned, so later
    operations can target the new resource. The first failure stops the
    batch; the transaction manager rolls everything back and the error
    leaves with the pointer of the operation that failed.
    """

    def __init__(
        self,
        transaction: TransactionManager,
        handlers: HandlerRegistry,
        registry: ResourceRegistry,
    ):
        self.transaction = transaction
        self.handlers = handlers
        self.registry = registry

    async def run(
        self,
        session: AsyncSession,
        operations: List[Operation],
        lids: LidRegistry,
    ) -> List[OperationOutcome]:
        context = ExecutionContext(session=session, lids=lids)

        async def work() -> List[OperationOutcome]:
            outcomes = []
            for operation in operations:
                outcomes.append(await self.execute(context, operation))
            return outcomes

        try:
            outcomes = await self.transaction.run(session, work)
        except ExecutionFailure as exc:
            logger.info("Atomic batch aborted at %s: %s", exc.pointer, exc.detail)
            raise

        logger.info("Atomic batch of %d operations committed", len(outcomes))
        return outcomes

    async def execute(self, context: ExecutionContext, operation: Operation) -> OperationOutcome:
        logger.debug("Executing %s %s", operation.op.value, operation.pointer)
        try:
            return await self.dispatch(context, operation)
        except ExecutionFailure as exc:
            raise exc.for_operation(operation.pointer)
        except SQLAlchemyError as exc:
            if is_invalid_value(exc):
                logger.warning("Rejected value at %s: %s", operation.pointer, exc)
                raise InvalidValueError(
                    "A value in the operation cannot be stored by the server.",
                    pointer=operation.pointer,
                ) from exc
            logger.exception("Database error executing %s", operation.pointer)
            raise ExecutionFailure(
                "The operation could not be executed.",
                pointer=operation.pointer,
            ) from exc

    async def dispatch(self, context: ExecutionContext, operation: Operation) -> OperationOutcome:
        ref = operation.ref
        handlers = self.handlers.get(ref.type)

        if operation.is_relationship_operation():
            return await self.mutate_relationship(context, operation, handlers)

        if operation.op is OperationType.ADD:
            changes = self.change_set(context, operation.data)
            model = await handlers.creator.create(context, ref.type, changes, ref.id)
            resource_id = self.identify(ref.type, model)
            if ref.lid is not None:
                context.lids.associate(ref.lid, resource_id)
            return OperationOutcome.for_resource(ref.type, resource_id, model)

        resource_id = self.resolve_id(context, ref)

        if operation.op is OperationType.UPDATE:
            changes = self.change_set(context, operation.data)
            model = await handlers.updater.update(context, ref.type, resource_id, changes)
            return OperationOutcome.for_resource(ref.type, self.identify(ref.type, model), model)

        await handlers.deleter.delete(context, ref.type, resource_id)
        return OperationOutcome.empty()

    async def mutate_relationship(
        self,
        context: ExecutionContext,
        operation: Operation,
        handlers: ResourceHandlers,
    ) -> OperationOutcome:
        ref = operation.ref
        relationship = self.registry.get(ref.type).relationships[ref.relationship]
        resource_id = self.resolve_id(context, ref)
        mutator = handlers.relationships

        if relationship.to_many:
            identifiers = [self.identifier(context, item) for item in operation.data]
            if operation.op is OperationType.ADD:
                await mutator.append(context, ref.type, resource_id, ref.relationship, identifiers)
            elif operation.op is OperationType.UPDATE:
                await mutator.replace_to_many(context, ref.type, resource_id, ref.relationship, identifiers)
            else:
                await mutator.detach(context, ref.type, resource_id, ref.relationship, identifiers)
        else:
            identifier = None if operation.data is None else self.identifier(context, operation.data)
            await mutator.replace_to_one(context, ref.type, resource_id, ref.relationship, identifier)

        return OperationOutcome.empty()

    def change_set(self, context: ExecutionContext, data: Dict[str, Any]) -> ChangeSet:
        relationships: Dict[str, Linkage] = {}
        for name, member in (data.get("relationships") or {}).items():
            linkage = member["data"]
            if isinstance(linkage, list):
                relationships[name] = [self.identifier(context, item) for item in linkage]
            elif linkage is None:
                relationships[name] = None
            else:
                relationships[name] = self.identifier(context, linkage)

        return ChangeSet(
            attributes=dict(data.get("attributes") or {}),
            relationships=relationships,
        )

    def identifier(self, context: ExecutionContext, linkage: Dict[str, Any]) -> ResourceIdentifier:
        if linkage.get("id"):
            return ResourceIdentifier(type=linkage["type"], id=linkage["id"])
        return ResourceIdentifier(type=linkage["type"], id=self.resolve_lid(context, linkage["lid"]))

    def resolve_id(self, context: ExecutionContext, ref: Ref) -> str:
        if ref.id is not None:
            return ref.id
        return self.resolve_lid(context, ref.lid)

    @staticmethod
    def resolve_lid(context: ExecutionContext, lid: str) -> str:
        resource_id = context.lids.resolve(lid)
        if resource_id is None:
            raise ExecutionFailure(f'Local identifier "{lid}" has no assigned resource identifier.')
        return resource_id

    def identify(self, resource_type: str, model: Any) -> str:
        metadata = self.registry.get(resource_type)
        return str(getattr(model, metadata.id_attribute))
