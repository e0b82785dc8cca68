from typing import Dict, List, Tuple


JSON_API = "application/vnd.api+json"
ATOMIC_EXTENSION = "https://jsonapi.org/ext/atomic"
JSON_API_ATOMIC = f'{JSON_API}; ext="{ATOMIC_EXTENSION}"'
ANY = "*/*"


def parse_media_type(value: str) -> Tuple[str, Dict[str, str]]:
    """
    Split a media type into its lower-cased base type and parameters.

    Args:
        value: A single media type, e.g. 'application/vnd.api+json; ext="..."'

    Returns:
        (base type, parameters) with quotes stripped from parameter values
    """
    parts = value.split(";")
    base = parts[0].strip().lower()

    params: Dict[str, str] = {}
    for part in parts[1:]:
        if "=" not in part:
            continue
        key, _, raw = part.partition("=")
        params[key.strip().lower()] = raw.strip().strip('"')

    return base, params


def split_header(value: str) -> List[str]:
    """
    Split a comma-separated header into entries.

    Commas inside quoted parameter values (the ext and profile parameters
    are space-separated URI lists and may be quoted) are not separators.
    """
    entries = []
    current = []
    quoted = False
    for char in value:
        if char == '"':
            quoted = not quoted
        if char == "," and not quoted:
            entries.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    entries.append("".join(current).strip())
    return [entry for entry in entries if entry]


def declares_extension(value: str, extension: str = ATOMIC_EXTENSION) -> bool:
    """Check whether a media type lists `extension` in its ext parameter."""
    _, params = parse_media_type(value)
    return extension in params.get("ext", "").split()


def normalize(value: str) -> str:
    """Canonical form used to compare configured and received media types."""
    if value.strip() == "*":
        return "*"
    base, params = parse_media_type(value)
    if not params:
        return base
    rendered = "; ".join(f'{key}="{params[key]}"' for key in sorted(params))
    return f"{base}; {rendered}"


def quality(params: Dict[str, str]) -> float:
    """The q weight of an Accept entry; 0 means "not acceptable"."""
    try:
        return float(params.get("q", "1"))
    except ValueError:
        return 1.0
