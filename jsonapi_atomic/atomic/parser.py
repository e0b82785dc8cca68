import json
from typing import Any, Dict, List, Optional

from jsonapi_atomic.atomic.config import AtomicConfig
from jsonapi_atomic.atomic.operation import Operation, OperationType, Ref
from jsonapi_atomic.core.exceptions import InvalidRequestError


OPERATIONS_MEMBER = "atomic:operations"
OPERATIONS_POINTER = f"/{OPERATIONS_MEMBER}"

_OP_CODES = {op.value for op in OperationType}


def _non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and value != ""


class OperationParser:
    """Turn an atomic request body into typed operations.

    Only the shape of each entry is checked here; whether the batch makes
    sense as a whole is decided by the validator.
    """

    def __init__(self, config: AtomicConfig):
        self.config = config

    def parse(self, body: bytes) -> List[Operation]:
        document = self.decode(body)

        if OPERATIONS_MEMBER not in document:
            raise InvalidRequestError(
                'The request body MUST contain an "atomic:operations" member.',
                pointer=OPERATIONS_POINTER,
            )

        entries = document[OPERATIONS_MEMBER]
        if not isinstance(entries, list):
            raise InvalidRequestError(
                'The "atomic:operations" member MUST be an array of operation objects.',
                pointer=OPERATIONS_POINTER,
            )
        if not entries:
            raise InvalidRequestError(
                'The "atomic:operations" array MUST contain at least one operation.',
                pointer=OPERATIONS_POINTER,
            )
        if len(entries) > self.config.max_operations:
            raise InvalidRequestError(
                f"No more than {self.config.max_operations} operations are allowed per request.",
                pointer=OPERATIONS_POINTER,
            )

        return [self.parse_operation(entry, index) for index, entry in enumerate(entries)]

    def decode(self, body: bytes) -> Dict[str, Any]:
        if not body or not body.strip():
            raise InvalidRequestError("Request body must not be empty.", pointer="/")

        try:
            document = json.loads(body)
        except ValueError as exc:
            raise InvalidRequestError(f"Request body is not valid JSON: {exc}", pointer="/") from exc
        except RecursionError as exc:
            raise InvalidRequestError("Request body is nested too deeply.", pointer="/") from exc

        if not isinstance(document, dict):
            raise InvalidRequestError("Request body must be a JSON object.", pointer="/")

        if "data" in document or "included" in document:
            raise InvalidRequestError(
                'Atomic operations documents MUST NOT contain top-level "data" or "included" members.',
                pointer="/",
            )

        return document

    def parse_operation(self, entry: Any, index: int) -> Operation:
        pointer = f"{OPERATIONS_POINTER}/{index}"
        if not isinstance(entry, dict):
            raise InvalidRequestError("Each operation MUST be an object.", pointer=pointer)

        op = entry.get("op")
        if not _non_empty_string(op):
            raise InvalidRequestError(
                'Each operation MUST contain a non-empty "op" member.',
                pointer=f"{pointer}/op",
            )
        if op not in _OP_CODES:
            raise InvalidRequestError(
                f'Unknown operation "{op}". Expected one of: add, update, remove.',
                pointer=f"{pointer}/op",
            )
        op = OperationType(op)

        ref = None
        if "ref" in entry:
            ref = self.parse_ref(entry["ref"], f"{pointer}/ref")

        href = None
        if "href" in entry:
            href = entry["href"]
            if not _non_empty_string(href):
                raise InvalidRequestError(
                    'The "href" member MUST be a non-empty string when present.',
                    pointer=f"{pointer}/href",
                )

        data = entry.get("data")
        if data is not None and not isinstance(data, (dict, list)):
            raise InvalidRequestError(
                'The "data" member MUST be either null, an object or an array.',
                pointer=f"{pointer}/data",
            )

        meta = entry.get("meta", {})
        if not isinstance(meta, dict):
            raise InvalidRequestError(
                'The "meta" member MUST be an object when present.',
                pointer=f"{pointer}/meta",
            )

        ref_member = "href" if href is not None and ref is None else "ref"
        if ref is None and href is None and op is not OperationType.REMOVE:
            ref = self.ref_from_data(data)
            ref_member = "data"

        return Operation(
            op=op,
            ref=ref,
            href=href,
            data=data,
            has_data="data" in entry,
            meta=meta,
            pointer=pointer,
            ref_member=ref_member,
        )

    def parse_ref(self, value: Any, pointer: str) -> Ref:
        if not isinstance(value, dict):
            raise InvalidRequestError('The "ref" member MUST be an object.', pointer=pointer)

        if not _non_empty_string(value.get("type")):
            raise InvalidRequestError(
                'The "ref.type" member MUST be a non-empty string.',
                pointer=f"{pointer}/type",
            )

        for member in ("id", "lid", "relationship"):
            if member in value and not _non_empty_string(value[member]):
                raise InvalidRequestError(
                    f'The "ref.{member}" member MUST be a non-empty string when present.',
                    pointer=f"{pointer}/{member}",
                )

        return Ref(
            type=value["type"],
            id=value.get("id"),
            lid=value.get("lid"),
            relationship=value.get("relationship"),
        )

    @staticmethod
    def ref_from_data(data: Any) -> Optional[Ref]:
        """Target of an add/update that addresses its resource through `data` only."""
        if not isinstance(data, dict) or not _non_empty_string(data.get("type")):
            return None
        return Ref(
            type=data["type"],
            id=data["id"] if _non_empty_string(data.get("id")) else None,
            lid=data["lid"] if _non_empty_string(data.get("lid")) else None,
        )
