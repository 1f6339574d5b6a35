def format_permit_id(prefix: str, number: int, digits: int) -> str:
    """``KASUPDA-PERMIT-`` + 7 -> ``KASUPDA-PERMIT-007``."""
    return f"{prefix}{number:0{digits}d}"


def permit_number(document_id: str, prefix: str) -> int | None:
    """Extract the sequence number from a permit id, or None if it has none."""
    if not document_id.startswith(prefix):
        return None
    head = document_id[len(prefix):].split("-", 1)[0]
    return int(head) if head.isdigit() else None
