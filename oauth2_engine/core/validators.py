"""
Character-set validators from RFC 6749 Appendix A.
"""

import re

# grant_type: 1*( ALPHA / DIGIT / "-" / "." / "_" ), or a URI for extensions
_NCHAR = re.compile(r"^[A-Za-z0-9\-._]+$")
# scope-token
_NQCHAR = re.compile(r"^[\x21\x23-\x5B\x5D-\x7E]+$")
# space separated scope-tokens
_NQSCHAR = re.compile(r"^[\x20-\x21\x23-\x5B\x5D-\x7E]+$")
# username / password
_UNICODECHARNOCRLF = re.compile(r"^[\x09\x20-\x7E\x80-\uD7FF\uE000-\uFFFD\U00010000-\U0010FFFF]+$")
# client_id, client_secret, code, state, access/refresh tokens
_VSCHAR = re.compile(r"^[\x20-\x7E]+$")
_URI = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]+:\S*$")


def is_nchar(value: str) -> bool:
    return bool(_NCHAR.fullmatch(value))


def is_nqchar(value: str) -> bool:
    return bool(_NQCHAR.fullmatch(value))


def is_nqschar(value: str) -> bool:
    return bool(_NQSCHAR.fullmatch(value))


def is_uchar(value: str) -> bool:
    return bool(_UNICODECHARNOCRLF.fullmatch(value))


def is_vschar(value: str) -> bool:
    return bool(_VSCHAR.fullmatch(value))


def is_uri(value: str) -> bool:
    """Loose absolute-URI check: a scheme, ``:`` and no whitespace."""
    return bool(_URI.fullmatch(value))
