"""
Media Type Validation Utilities for Tubely

This module implements the declared-content-type checks applied to every
uploaded part before any file is written or any external tool is started:
- Parsing a declared Content-Type down to its base `type/subtype`
- Exact matching against a fixed allow-list per endpoint
- Deriving the stored file extension from the validated subtype

Allow-lists:
- video uploads: video/mp4
- thumbnail uploads: image/jpeg, image/png
"""

import re

from app.core.errors import UnsupportedMediaType


# =============================================================================
# CONSTANTS - Allow-lists
# =============================================================================

ALLOWED_VIDEO_MEDIA_TYPES: frozenset[str] = frozenset({"video/mp4"})

ALLOWED_THUMBNAIL_MEDIA_TYPES: frozenset[str] = frozenset({"image/jpeg", "image/png"})

# RFC 2045 token: any CHAR except SPACE, CTLs and tspecials
_TOKEN = r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+"
_MEDIA_TYPE_RE = re.compile(rf"^({_TOKEN})/({_TOKEN})$")


# =============================================================================
# MEDIA TYPE PARSING
# =============================================================================


def parse_media_type(declared: str | None) -> str:
    """
    Reduce a declared Content-Type header value to its lowercase base type.

    Parameters after the first `;` (charset, codecs, ...) are discarded.

    Args:
        declared: Raw header value, e.g. "video/mp4; codecs=avc1"

    Returns:
        str: The base media type, e.g. "video/mp4"

    Raises:
        UnsupportedMediaType: If the value is missing or not `type/subtype`.

    Example:
        >>> parse_media_type("Image/PNG; charset=binary")
        'image/png'
    """
    if not declared:
        raise UnsupportedMediaType("Missing Content-Type for uploaded file")

    base = declared.split(";", 1)[0].strip().lower()
    if not _MEDIA_TYPE_RE.match(base):
        raise UnsupportedMediaType(f"Could not parse Content-Type '{declared}'")
    return base


def validate_media_type(declared: str | None, allowed: frozenset[str]) -> str:
    """
    Parse `declared` and require an exact match against `allowed`.

    Returns:
        str: The validated base media type.

    Raises:
        UnsupportedMediaType: On a parse failure or a type outside the allow-list.
    """
    media_type = parse_media_type(declared)
    if media_type not in allowed:
        raise UnsupportedMediaType(
            f"File must be one of: {', '.join(sorted(allowed))} (got '{media_type}')"
        )
    return media_type


def extension_for_media_type(media_type: str) -> str:
    """
    Return the file extension for a validated media type.

    The extension is the subtype with a leading dot, so "video/mp4" maps to
    ".mp4" and "image/jpeg" to ".jpeg".
    """
    return "." + media_type.split("/", 1)[1]


__all__ = [
    "ALLOWED_THUMBNAIL_MEDIA_TYPES",
    "ALLOWED_VIDEO_MEDIA_TYPES",
    "extension_for_media_type",
    "parse_media_type",
    "validate_media_type",
]
