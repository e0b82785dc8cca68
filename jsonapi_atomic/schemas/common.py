from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorSource(BaseModel):
    """Where in the request document an error originated."""
    pointer: str


class ErrorObject(BaseModel):
    """A JSON:API error object."""
    status: str
    code: str
    title: str
    detail: str
    source: Optional[ErrorSource] = None


class ErrorDocument(BaseModel):
    """A JSON:API error document."""
    errors: List[ErrorObject]


class RelationshipObject(BaseModel):
    links: Dict[str, str] = Field(default_factory=dict)
    data: Any = None


class ResourceObject(BaseModel):
    """A resource as rendered in atomic:results."""
    type: str
    id: str
    attributes: Dict[str, Any] = Field(default_factory=dict)
    relationships: Dict[str, RelationshipObject] = Field(default_factory=dict)
    links: Dict[str, str] = Field(default_factory=dict)


class AtomicResult(BaseModel):
    """A result entry: empty, or the resource an operation produced."""
    data: Optional[ResourceObject] = None


class AtomicResultsDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    results: List[AtomicResult] = Field(alias="atomic:results")
