import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import inspect

from jsonapi_atomic.atomic.config import AtomicConfig
from jsonapi_atomic.atomic.lid import LidRegistry
from jsonapi_atomic.atomic.operation import Operation, OperationType, Ref
from jsonapi_atomic.core.exceptions import ValidationError
from jsonapi_atomic.resources.registry import RelationshipMetadata, ResourceMetadata, ResourceRegistry


logger = logging.getLogger(__name__)


def _non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and value != ""


class OperationValidator:
    """
    Check a parsed batch before anything is executed.

    The batch is walked once, left to right. Local identifiers are declared
    by `add` operations as they are reached, so a reference is valid only
    when an earlier operation declared it. Every failure is attributed to
    the offending member of the request body.
    """

    def __init__(self, config: AtomicConfig, registry: ResourceRegistry):
        self.config = config
        self.registry = registry

    def validate(self, operations: List[Operation]) -> Tuple[List[Operation], LidRegistry]:
        lids = LidRegistry()
        validated = [self.validate_operation(operation, lids) for operation in operations]
        logger.debug("Validated %d operations declaring %d local identifiers", len(validated), len(lids))
        return validated, lids

    def validate_operation(self, operation: Operation, lids: LidRegistry) -> Operation:
        pointer = operation.pointer

        if operation.ref is not None and operation.href is not None:
            raise ValidationError(
                'Operations MUST specify either "ref" or "href", but not both.',
                pointer=pointer,
            )

        ref = operation.ref
        if ref is None:
            if operation.href is None:
                if operation.op is OperationType.REMOVE:
                    raise ValidationError(
                        'Each operation MUST include a "ref" or "href" member.',
                        pointer=pointer,
                    )
                raise ValidationError(
                    'Resource objects MUST specify a type when the operation has no "ref" or "href".',
                    pointer=f"{pointer}/data/type",
                )
            if not self.config.allow_href:
                raise ValidationError(
                    'The "href" member is not allowed by server configuration.',
                    pointer=f"{pointer}/href",
                )
            ref = self.ref_from_href(operation.href, f"{pointer}/href")

        if ref.id is not None and ref.lid is not None:
            raise ValidationError(
                'A target MUST NOT specify both "id" and "lid".',
                pointer=operation.target_pointer(),
            )

        if not self.registry.has_type(ref.type):
            raise ValidationError(
                f'Resource type "{ref.type}" is not recognised.',
                pointer=operation.target_pointer("type"),
            )
        metadata = self.registry.get(ref.type)

        if operation.requires_data() and not operation.has_data:
            raise ValidationError(
                f'The "data" member is required for "{operation.op.value}" operations.',
                pointer=f"{pointer}/data",
            )

        if ref.is_relationship:
            ref = self.validate_relationship_operation(operation, ref, metadata, lids)
        else:
            ref = self.validate_resource_operation(operation, ref, metadata, lids)

        return operation.model_copy(update={"ref": ref})

    def validate_resource_operation(
        self,
        operation: Operation,
        ref: Ref,
        metadata: ResourceMetadata,
        lids: LidRegistry,
    ) -> Ref:
        pointer = operation.pointer

        if operation.op is OperationType.REMOVE:
            if operation.data is not None:
                raise ValidationError(
                    'Remove operations MUST NOT include a "data" member.',
                    pointer=f"{pointer}/data",
                )
            self.require_identifier(operation, ref)
            self.check_lid_reference(operation, ref, lids)
            return ref

        data = operation.data
        if not isinstance(data, dict):
            raise ValidationError(
                'The "data" member MUST be a resource object.',
                pointer=f"{pointer}/data",
            )

        data_type = data.get("type")
        if operation.op is OperationType.ADD and not _non_empty_string(data_type):
            raise ValidationError("Resource objects MUST specify a type.", pointer=f"{pointer}/data/type")
        if "type" in data and not _non_empty_string(data_type):
            raise ValidationError(
                'When present, the "type" member MUST be a non-empty string.',
                pointer=f"{pointer}/data/type",
            )
        if data_type is not None and data_type != ref.type:
            raise ValidationError(
                f'Resource type must be "{ref.type}", got "{data_type}".',
                pointer=f"{pointer}/data/type",
            )

        for member in ("id", "lid"):
            if member in data and not _non_empty_string(data[member]):
                raise ValidationError(
                    f'When present, the "{member}" member MUST be a non-empty string.',
                    pointer=f"{pointer}/data/{member}",
                )
        data_id = data.get("id")
        data_lid = data.get("lid")

        self.validate_payload(operation, data, metadata, lids)

        if operation.op is OperationType.ADD:
            return self.declare(operation, ref, data_id, data_lid, lids)

        self.require_identifier(operation, ref)
        if data_id is not None and data_id != ref.id:
            raise ValidationError(
                f'The resource id "{data_id}" does not match the operation target.',
                pointer=f"{pointer}/data/id",
            )
        if data_lid is not None and data_lid != ref.lid:
            raise ValidationError(
                f'The resource lid "{data_lid}" does not match the operation target.',
                pointer=f"{pointer}/data/lid",
            )
        self.check_lid_reference(operation, ref, lids)
        return ref

    def declare(
        self,
        operation: Operation,
        ref: Ref,
        data_id: Optional[str],
        data_lid: Optional[str],
        lids: LidRegistry,
    ) -> Ref:
        """Declare the local identifier introduced by an add operation, if any."""
        pointer = operation.pointer

        if data_id is not None and ref.id is not None and data_id != ref.id:
            raise ValidationError(
                f'The resource id "{data_id}" does not match the operation target.',
                pointer=f"{pointer}/data/id",
            )
        if data_lid is not None and ref.lid is not None and data_lid != ref.lid:
            raise ValidationError(
                f'The resource lid "{data_lid}" does not match the operation target.',
                pointer=f"{pointer}/data/lid",
            )

        client_id = data_id or ref.id
        lid = data_lid or ref.lid
        if client_id is not None and lid is not None:
            raise ValidationError(
                'An "add" operation MUST NOT specify both "id" and "lid".',
                pointer=f"{pointer}/data",
            )

        if lid is not None:
            lid_pointer = f"{pointer}/data/lid" if data_lid is not None else operation.target_pointer("lid")
            if lid in lids:
                raise ValidationError(
                    f'Duplicate local identifier "{lid}", already declared by {lids.get(lid).declared_at}. '
                    "Each lid must be unique within an atomic operations request.",
                    pointer=lid_pointer,
                )
            lids.declare(lid, ref.type, pointer)

        return Ref(type=ref.type, id=client_id, lid=lid)

    def validate_relationship_operation(
        self,
        operation: Operation,
        ref: Ref,
        metadata: ResourceMetadata,
        lids: LidRegistry,
    ) -> Ref:
        pointer = operation.pointer

        relationship = metadata.relationships.get(ref.relationship)
        if relationship is None:
            raise ValidationError(
                f'Relationship "{ref.relationship}" is not defined for resource "{ref.type}".',
                pointer=operation.target_pointer("relationship"),
            )

        self.require_identifier(operation, ref)
        self.check_lid_reference(operation, ref, lids)

        if not relationship.to_many and operation.op is not OperationType.UPDATE:
            raise ValidationError(
                'Only the "update" operation is allowed for to-one relationships.',
                pointer=f"{pointer}/op",
            )

        self.validate_linkage(operation.data, relationship, f"{pointer}/data", lids)
        return ref

    def validate_payload(
        self,
        operation: Operation,
        data: Dict[str, Any],
        metadata: ResourceMetadata,
        lids: LidRegistry,
    ) -> None:
        """Check attributes and relationship members of a resource object."""
        pointer = f"{operation.pointer}/data"

        attributes = data.get("attributes")
        if attributes is not None:
            if not isinstance(attributes, dict):
                raise ValidationError(
                    'The "attributes" member MUST be an object.',
                    pointer=f"{pointer}/attributes",
                )
            for name, value in attributes.items():
                if name not in metadata.attributes:
                    raise ValidationError(
                        f'Unknown attribute "{name}" for resource type "{metadata.type}".',
                        pointer=f"{pointer}/attributes/{name}",
                    )
                self.validate_attribute_value(metadata, name, value, f"{pointer}/attributes/{name}")

        relationships = data.get("relationships")
        if relationships is None:
            return
        if not isinstance(relationships, dict):
            raise ValidationError(
                'The "relationships" member MUST be an object.',
                pointer=f"{pointer}/relationships",
            )

        for name, member in relationships.items():
            member_pointer = f"{pointer}/relationships/{name}"
            relationship = metadata.relationships.get(name)
            if relationship is None:
                raise ValidationError(
                    f'Relationship "{name}" is not defined for resource "{metadata.type}".',
                    pointer=member_pointer,
                )
            if not isinstance(member, dict) or "data" not in member:
                raise ValidationError(
                    'Relationship members MUST be objects with a "data" member.',
                    pointer=member_pointer,
                )
            self.validate_linkage(member["data"], relationship, f"{member_pointer}/data", lids)

    @staticmethod
    def validate_attribute_value(metadata: ResourceMetadata, name: str, value: Any, pointer: str) -> None:
        """Check a value against the column that stores the attribute."""
        if isinstance(value, (dict, list)):
            raise ValidationError(f'Attribute "{name}" must be a single value.', pointer=pointer)

        column = inspect(metadata.model).columns.get(name)
        if column is None:
            return
        if value is None:
            if not column.nullable:
                raise ValidationError(f'Attribute "{name}" must not be null.', pointer=pointer)
            return

        try:
            expected = column.type.python_type
        except NotImplementedError:
            return
        if expected not in (str, int, float, bool):
            return
        # bool is an int subclass; JSON keeps them apart.
        if isinstance(value, bool) != (expected is bool):
            valid = False
        elif expected is float:
            valid = isinstance(value, (int, float))
        else:
            valid = isinstance(value, expected)
        if not valid:
            raise ValidationError(
                f'Attribute "{name}" must be of type {expected.__name__}.',
                pointer=pointer,
            )

    def validate_linkage(
        self,
        linkage: Any,
        relationship: RelationshipMetadata,
        pointer: str,
        lids: LidRegistry,
    ) -> None:
        if relationship.to_many:
            if not isinstance(linkage, list):
                raise ValidationError(
                    "Relationship data for to-many relationships MUST be an array of resource identifiers.",
                    pointer=pointer,
                )
            for index, identifier in enumerate(linkage):
                self.validate_identifier(identifier, relationship.target_type, f"{pointer}/{index}", lids)
            return

        if linkage is None:
            return
        if not isinstance(linkage, dict):
            raise ValidationError(
                "Relationship data for to-one relationships MUST be a resource identifier or null.",
                pointer=pointer,
            )
        self.validate_identifier(linkage, relationship.target_type, pointer, lids)

    def validate_identifier(self, identifier: Any, expected_type: str, pointer: str, lids: LidRegistry) -> None:
        if not isinstance(identifier, dict):
            raise ValidationError(
                "Resource identifiers MUST be objects containing at least a type member.",
                pointer=pointer,
            )

        resource_type = identifier.get("type")
        if not _non_empty_string(resource_type):
            raise ValidationError(
                "Resource identifiers MUST contain a non-empty type.",
                pointer=f"{pointer}/type",
            )
        if resource_type != expected_type:
            raise ValidationError(
                f'Resource type must be "{expected_type}", got "{resource_type}".',
                pointer=f"{pointer}/type",
            )

        has_id = _non_empty_string(identifier.get("id"))
        has_lid = _non_empty_string(identifier.get("lid"))
        if has_id == has_lid:
            raise ValidationError(
                'Resource identifiers MUST include exactly one of "id" or "lid".',
                pointer=pointer,
            )
        if has_lid:
            self.check_lid(identifier["lid"], resource_type, f"{pointer}/lid", lids)

    def require_identifier(self, operation: Operation, ref: Ref) -> None:
        if not ref.has_identifier():
            raise ValidationError(
                f'"{operation.op.value}" operations MUST identify their target with "id" or "lid".',
                pointer=operation.target_pointer(),
            )

    def check_lid_reference(self, operation: Operation, ref: Ref, lids: LidRegistry) -> None:
        if ref.lid is not None:
            self.check_lid(ref.lid, ref.type, operation.target_pointer("lid"), lids)

    @staticmethod
    def check_lid(lid: str, resource_type: str, pointer: str, lids: LidRegistry) -> None:
        if lid not in lids:
            raise ValidationError(
                f'Local identifier "{lid}" is not declared by an earlier "add" operation.',
                pointer=pointer,
            )
        declared_type = lids.type_of(lid)
        if declared_type != resource_type:
            raise ValidationError(
                f'Local identifier "{lid}" identifies a resource of type "{declared_type}", not "{resource_type}".',
                pointer=pointer,
            )

    def ref_from_href(self, href: str, pointer: str) -> Ref:
        """Resolve `<prefix>/<type>[/<id>[/relationships/<name>]]` into a target."""
        if "://" in href:
            raise ValidationError('The "href" member MUST be a relative URI.', pointer=pointer)
        if not href.startswith("/"):
            raise ValidationError('The "href" member MUST be an absolute path.', pointer=pointer)

        prefix = self.config.route_prefix.rstrip("/")
        if prefix and href != prefix and not href.startswith(f"{prefix}/"):
            raise ValidationError(f'The "href" member MUST start with "{prefix}".', pointer=pointer)

        path = href[len(prefix):].split("?", 1)[0].strip("/")
        segments = path.split("/") if path else []
        if not segments or len(segments) > 4 or "" in segments:
            raise ValidationError("Unable to resolve a resource from href.", pointer=pointer)

        relationship = None
        if len(segments) > 2:
            if len(segments) != 4 or segments[2] != "relationships":
                raise ValidationError("Unable to resolve a resource from href.", pointer=pointer)
            relationship = segments[3]

        return Ref(
            type=segments[0],
            id=segments[1] if len(segments) > 1 else None,
            relationship=relationship,
        )
