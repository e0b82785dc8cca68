from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class LidEntry:
    type: str
    declared_at: str
    id: Optional[str] = None


class LidRegistry:
    """
    Local identifiers of one atomic request.

    Declarations are recorded by validation, in request order. Real
    identifiers are associated by the dispatcher as `add` operations
    complete, so a lid is resolvable only after its declaring operation ran.
    """

    def __init__(self):
        self._entries: Dict[str, LidEntry] = {}

    def __contains__(self, lid: str) -> bool:
        return lid in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def declare(self, lid: str, resource_type: str, pointer: str) -> None:
        if lid in self._entries:
            raise KeyError(lid)
        self._entries[lid] = LidEntry(type=resource_type, declared_at=pointer)

    def get(self, lid: str) -> Optional[LidEntry]:
        return self._entries.get(lid)

    def type_of(self, lid: str) -> Optional[str]:
        entry = self._entries.get(lid)
        return entry.type if entry else None

    def associate(self, lid: str, resource_id: str) -> None:
        self._entries[lid].id = resource_id

    def resolve(self, lid: str) -> Optional[str]:
        entry = self._entries.get(lid)
        return entry.id if entry else None

    def declared(self) -> frozenset:
        return frozenset(self._entries)
