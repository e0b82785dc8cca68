import uuid


def generate_gid() -> str:
    """Generate a server-assigned resource identifier."""
    return str(uuid.uuid4()).replace("-", "")[:16]
