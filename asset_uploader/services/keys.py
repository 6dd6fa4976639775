"""
Storage key generation.

Keys look like ``{prefix}/{uuid4 hex}.{ext}``. The extension is the
trailing dot-suffix of the original filename, taken verbatim: no case
folding and no content sniffing.
"""
import posixpath
import uuid
from typing import Optional


def extension_of(filename: str) -> str:
    """Return the text after the last dot of the basename, or ''."""
    base = posixpath.basename((filename or "").replace("\\", "/"))
    _, sep, ext = base.rpartition(".")
    return ext if sep else ""


def make_storage_key(prefix: str, filename: str, uuid_hex: Optional[str] = None) -> str:
    """
    Build a unique storage key for an uploaded file.

    Args:
        prefix: Namespace prefix (e.g. "imoveis")
        filename: Original filename as declared by the client
        uuid_hex: Fixed unique id, mainly for tests; random uuid4 otherwise

    Returns:
        Key such as "imoveis/3f2b...9c.jpg"
    """
    unique = uuid_hex or uuid.uuid4().hex
    ext = extension_of(filename)
    name = f"{unique}.{ext}" if ext else unique
    return f"{prefix.strip('/')}/{name}"


__all__ = ["extension_of", "make_storage_key"]
