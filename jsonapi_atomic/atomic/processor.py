from typing import List, Mapping, Optional

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession

from jsonapi_atomic.atomic.config import AtomicConfig
from jsonapi_atomic.atomic.contracts import DocumentSerializer, TransactionManager
from jsonapi_atomic.atomic.dispatcher import OperationDispatcher, OperationOutcome
from jsonapi_atomic.atomic.handlers import HandlerRegistry
from jsonapi_atomic.atomic.parser import OperationParser
from jsonapi_atomic.atomic.results import AtomicResultSet, ResultBuilder
from jsonapi_atomic.atomic.transaction import SQLAlchemyTransactionManager
from jsonapi_atomic.atomic.validator import OperationValidator
from jsonapi_atomic.resources.registry import ResourceRegistry
from jsonapi_atomic.resources.serializer import JsonApiSerializer
from jsonapi_atomic.utils.filters import parse_fieldsets


class AtomicProcessor:
    """parse -> validate -> dispatch (one transaction) -> build results."""

    def __init__(
        self,
        config: AtomicConfig,
        parser: OperationParser,
        validator: OperationValidator,
        dispatcher: OperationDispatcher,
        results: ResultBuilder,
    ):
        self.config = config
        self.parser = parser
        self.validator = validator
        self.dispatcher = dispatcher
        self.results = results

    async def process(
        self,
        session: AsyncSession,
        body: bytes,
        query_params: Optional[Mapping[str, str]] = None,
    ) -> AtomicResultSet:
        operations = self.parser.parse(body)
        validated, lids = self.validator.validate(operations)
        outcomes = await self.dispatcher.run(session, validated, lids)
        await self.refresh(session, outcomes)

        fieldsets = None
        if self.config.results_apply_fieldsets and query_params:
            fieldsets = parse_fieldsets(query_params)
        return self.results.build(outcomes, fieldsets)

    @staticmethod
    async def refresh(session: Optional[AsyncSession], outcomes: List[OperationOutcome]) -> None:
        """Reload produced resources so later operations of the batch show in the results."""
        if session is None:
            return
        seen = set()
        for outcome in outcomes:
            state = inspect(outcome.model, raiseerr=False) if outcome.has_data else None
            if state is None or not state.persistent or id(outcome.model) in seen:
                continue
            seen.add(id(outcome.model))
            await session.refresh(outcome.model)


def build_processor(
    config: AtomicConfig,
    registry: ResourceRegistry,
    handlers: HandlerRegistry,
    transaction: Optional[TransactionManager] = None,
    serializer: Optional[DocumentSerializer] = None,
) -> AtomicProcessor:
    return AtomicProcessor(
        config=config,
        parser=OperationParser(config),
        validator=OperationValidator(config, registry),
        dispatcher=OperationDispatcher(
            transaction or SQLAlchemyTransactionManager(),
            handlers,
            registry,
        ),
        results=ResultBuilder(
            config.return_policy,
            serializer or JsonApiSerializer(registry, config.route_prefix),
        ),
    )
