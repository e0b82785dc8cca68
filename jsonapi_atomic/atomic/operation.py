from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class OperationType(str, Enum):
    """Operation codes of the atomic extension."""
    ADD = "add"
    UPDATE = "update"
    REMOVE = "remove"


class Ref(BaseModel):
    """Target of an operation: a resource, or a relationship of a resource."""
    model_config = ConfigDict(frozen=True)

    type: str
    id: Optional[str] = None
    lid: Optional[str] = None
    relationship: Optional[str] = None

    def has_identifier(self) -> bool:
        return self.id is not None or self.lid is not None

    @property
    def is_relationship(self) -> bool:
        return self.relationship is not None


class Operation(BaseModel):
    """One entry of the atomic:operations array."""
    model_config = ConfigDict(frozen=True)

    op: OperationType
    ref: Optional[Ref] = None
    href: Optional[str] = None
    data: Any = None
    has_data: bool = False
    meta: Dict[str, Any] = Field(default_factory=dict)
    pointer: str
    # Member the target was read from: "ref", "href" or "data"
    ref_member: str = "ref"

    def target_pointer(self, member: Optional[str] = None) -> str:
        """Pointer to the part of the request that named the target."""
        if self.ref_member == "href":
            return f"{self.pointer}/href"
        if self.ref_member == "data":
            if member in ("id", "lid", "type"):
                return f"{self.pointer}/data/{member}"
            return f"{self.pointer}/data"
        if member:
            return f"{self.pointer}/ref/{member}"
        return f"{self.pointer}/ref"

    def requires_data(self) -> bool:
        return self.op is not OperationType.REMOVE

    def is_relationship_operation(self) -> bool:
        return self.ref is not None and self.ref.is_relationship


class ResourceIdentifier(BaseModel):
    """Resource linkage after local identifiers have been resolved."""
    model_config = ConfigDict(frozen=True)

    type: str
    id: str


Linkage = Union[None, ResourceIdentifier, List[ResourceIdentifier]]


class ChangeSet(BaseModel):
    """Attribute values and relationship linkage to apply to one resource."""
    attributes: Dict[str, Any] = Field(default_factory=dict)
    relationships: Dict[str, Linkage] = Field(default_factory=dict)
