import re
from typing import Any, Dict, Mapping, Optional, Set


FIELDSET_PARAM = re.compile(r"^fields\[([^\[\]]+)\]$")


def parse_field_list(value: Optional[str]) -> Set[str]:
    """
    Parse a comma-separated list of field names.

    Args:
        value: Comma-separated list of fields, e.g. "title,author"

    Returns:
        Set of field names, empty entries dropped
    """
    if not value:
        return set()

    fields = set()
    for field in value.split(","):
        field = field.strip()
        if field:
            fields.add(field)

    return fields


def parse_fieldsets(query_params: Mapping[str, str]) -> Dict[str, Set[str]]:
    """
    Collect sparse fieldsets from `fields[<type>]` query parameters.

    An empty parameter (`fields[articles]=`) is kept as an empty set and
    means no attributes or relationships for that type.
    """
    fieldsets: Dict[str, Set[str]] = {}
    for key, value in query_params.items():
        match = FIELDSET_PARAM.match(key)
        if match:
            fieldsets[match.group(1)] = parse_field_list(value)
    return fieldsets


def filter_fields(data: Dict[str, Any], fields: Set[str]) -> Dict[str, Any]:
    """
    Filter a dictionary to only include the specified fields.

    Args:
        data: Dictionary to filter
        fields: Set of field names to include

    Returns:
        Filtered dictionary
    """
    return {key: value for key, value in data.items() if key in fields}
