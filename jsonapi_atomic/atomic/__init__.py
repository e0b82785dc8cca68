# Atomic operations engine
from jsonapi_atomic.atomic.config import AtomicConfig, ReturnPolicy
from jsonapi_atomic.atomic.dispatcher import OperationDispatcher, OperationOutcome
from jsonapi_atomic.atomic.lid import LidRegistry
from jsonapi_atomic.atomic.operation import Operation, OperationType, Ref, ResourceIdentifier
from jsonapi_atomic.atomic.parser import OperationParser
from jsonapi_atomic.atomic.processor import AtomicProcessor, build_processor
from jsonapi_atomic.atomic.results import AtomicResultSet, ResultBuilder
from jsonapi_atomic.atomic.validator import OperationValidator

__all__ = [
    "AtomicConfig",
    "ReturnPolicy",
    "OperationDispatcher",
    "OperationOutcome",
    "LidRegistry",
    "Operation",
    "OperationType",
    "Ref",
    "ResourceIdentifier",
    "OperationParser",
    "AtomicProcessor",
    "build_processor",
    "AtomicResultSet",
    "ResultBuilder",
    "OperationValidator",
]
