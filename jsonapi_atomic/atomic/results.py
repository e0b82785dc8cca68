from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from jsonapi_atomic.atomic.config import ReturnPolicy
from jsonapi_atomic.atomic.contracts import DocumentSerializer
from jsonapi_atomic.atomic.dispatcher import OperationOutcome


RESULTS_MEMBER = "atomic:results"


@dataclass
class AtomicResultSet:
    """One result entry per operation, and whether the response may be empty."""
    results: List[Dict[str, Any]]
    all_empty: bool

    def to_document(self) -> Dict[str, Any]:
        return {RESULTS_MEMBER: self.results}


class ResultBuilder:
    """Shape operation outcomes into atomic:results according to the return policy."""

    def __init__(self, policy: ReturnPolicy, serializer: DocumentSerializer):
        self.policy = policy
        self.serializer = serializer

    def build(
        self,
        outcomes: List[OperationOutcome],
        fieldsets: Optional[Dict[str, Set[str]]] = None,
    ) -> AtomicResultSet:
        if self.policy is ReturnPolicy.NONE:
            return AtomicResultSet(results=[{} for _ in outcomes], all_empty=True)

        fieldsets = fieldsets or {}
        results = []
        all_empty = True
        for outcome in outcomes:
            if not outcome.has_data:
                results.append({})
                continue

            resource = self.serializer.serialize(
                outcome.type,
                outcome.model,
                fieldsets.get(outcome.type),
            )
            results.append({"data": resource})
            all_empty = False

        if self.policy is ReturnPolicy.ALWAYS:
            all_empty = False

        return AtomicResultSet(results=results, all_empty=all_empty)
