"""
Collaborators the atomic engine delegates to.

The engine never touches storage itself: every mutation goes through one of
these contracts, and the whole batch runs inside one TransactionManager.run()
call. Implementations receive the ExecutionContext of the running batch.
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Set, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from jsonapi_atomic.atomic.lid import LidRegistry
from jsonapi_atomic.atomic.operation import ChangeSet, ResourceIdentifier


T = TypeVar("T")


@dataclass
class ExecutionContext:
    """State of one batch run: the transaction handle and the lid table."""
    session: AsyncSession
    lids: LidRegistry


class TransactionManager(Protocol):
    async def run(self, session: AsyncSession, work: Callable[[], Awaitable[T]]) -> T:
        """Commit when `work` returns, roll back and re-raise when it fails."""
        ...


class ResourceCreator(Protocol):
    async def create(
        self,
        context: ExecutionContext,
        resource_type: str,
        changes: ChangeSet,
        client_id: Optional[str] = None,
    ) -> Any:
        ...


class ResourceUpdater(Protocol):
    async def update(
        self,
        context: ExecutionContext,
        resource_type: str,
        resource_id: str,
        changes: ChangeSet,
    ) -> Any:
        ...


class ResourceDeleter(Protocol):
    async def delete(self, context: ExecutionContext, resource_type: str, resource_id: str) -> None:
        ...


class RelationshipMutator(Protocol):
    async def append(
        self,
        context: ExecutionContext,
        resource_type: str,
        resource_id: str,
        relationship: str,
        identifiers: List[ResourceIdentifier],
    ) -> None:
        ...

    async def replace_to_many(
        self,
        context: ExecutionContext,
        resource_type: str,
        resource_id: str,
        relationship: str,
        identifiers: List[ResourceIdentifier],
    ) -> None:
        ...

    async def detach(
        self,
        context: ExecutionContext,
        resource_type: str,
        resource_id: str,
        relationship: str,
        identifiers: List[ResourceIdentifier],
    ) -> None:
        ...

    async def replace_to_one(
        self,
        context: ExecutionContext,
        resource_type: str,
        resource_id: str,
        relationship: str,
        identifier: Optional[ResourceIdentifier],
    ) -> None:
        ...


class DocumentSerializer(Protocol):
    def serialize(
        self,
        resource_type: str,
        model: Any,
        fields: Optional[Set[str]] = None,
    ) -> Dict[str, Any]:
        ...
