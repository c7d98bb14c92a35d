"""Identifier formats for files and reports."""

import re
import secrets
import string

FILE_ID_PATTERN = r"^file_[a-zA-Z0-9]{6}$"
REPORT_ID_PATTERN = r"^rep_[a-zA-Z0-9]{6}$"

_ID_ALPHABET = string.ascii_letters + string.digits
_FILE_ID_RE = re.compile(FILE_ID_PATTERN)
_REPORT_ID_RE = re.compile(REPORT_ID_PATTERN)


def generate_file_id() -> str:
    """Returns a new ``file_XXXXXX`` identifier."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"file_{suffix}"


def is_valid_file_id(value: object) -> bool:
    return isinstance(value, str) and bool(_FILE_ID_RE.fullmatch(value))


def is_valid_report_id(value: object) -> bool:
    return isinstance(value, str) and bool(_REPORT_ID_RE.fullmatch(value))
