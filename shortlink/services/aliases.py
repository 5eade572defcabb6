"""Custom alias format rules.

Only the format is checked here; whether an alias is free is decided by the
creation service against the record store.
"""

import re
from typing import Optional

from shortlink.core.config import settings
from shortlink.services.exceptions import InvalidAliasFormatError

ALIAS_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


def is_valid_alias(alias: Optional[str], min_length: Optional[int] = None, max_length: Optional[int] = None) -> bool:
    if not isinstance(alias, str):
        return False
    min_length = settings.ALIAS_MIN_LENGTH if min_length is None else min_length
    max_length = settings.ALIAS_MAX_LENGTH if max_length is None else max_length
    return min_length <= len(alias) <= max_length and ALIAS_PATTERN.fullmatch(alias) is not None


def validate_alias(alias: str, min_length: Optional[int] = None, max_length: Optional[int] = None) -> str:
    """
    Check a requested alias and return it unchanged.

    Raises:
        InvalidAliasFormatError: If the alias has the wrong length or
            contains characters other than letters, digits, ``_`` and ``-``
    """
    if not is_valid_alias(alias, min_length, max_length):
        min_length = settings.ALIAS_MIN_LENGTH if min_length is None else min_length
        max_length = settings.ALIAS_MAX_LENGTH if max_length is None else max_length
        raise InvalidAliasFormatError(
            f"Alias '{alias}' does not meet requirements. "
            f"Must be {min_length}-{max_length} characters long, "
            f"containing only letters, numbers, underscores and hyphens."
        )
    return alias
