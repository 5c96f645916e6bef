"""
Input validation helpers

Every validator returns a tuple whose first two items are
(is_valid, error_message).
"""
import re
from typing import Any, Optional, Tuple

# Etsy accepts page sizes of 1-100
MAX_LIMIT = 100
MAX_PAGE_SIZE = 200


def validate_limit(limit: Any) -> Tuple[bool, Optional[str], Optional[int]]:
    """
    Validate the listings page size

    Returns:
        (is_valid, error_message, cleaned_limit); None means "use the default"
    """
    if limit is None or limit == '':
        return True, None, None

    if isinstance(limit, bool):
        return False, 'limit must be an integer', None

    try:
        cleaned = int(limit)
    except (TypeError, ValueError):
        return False, 'limit must be an integer', None

    if cleaned < 1 or cleaned > MAX_LIMIT:
        return False, f'limit must be between 1 and {MAX_LIMIT}', None

    return True, None, cleaned


def validate_language(language: Any) -> Tuple[bool, Optional[str], Optional[str]]:
    """
    Validate a language code such as 'en' or 'de'

    Returns:
        (is_valid, error_message, cleaned_language)
    """
    if language is None or language == '':
        return True, None, None

    if not isinstance(language, str):
        return False, 'language must be a string', None

    language = language.strip().lower()
    if not re.match(r'^[a-z]{2}(-[a-z]{2})?$', language):
        return False, 'language must be a code like "en" or "pt-br"', None

    return True, None, language


def validate_node_type(node_type: Any, allowed) -> Tuple[bool, Optional[str], Optional[str]]:
    """
    Validate a node type filter against the known node types

    Returns:
        (is_valid, error_message, cleaned_type)
    """
    if not node_type:
        return True, None, None

    if node_type not in allowed:
        return False, f"Unknown node type, must be one of {list(allowed)}", None

    return True, None, node_type


def validate_pagination(
    page: Any,
    page_size: Any,
    default_page_size: int = 50
) -> Tuple[bool, Optional[str], int, int]:
    """
    Validate page / page_size query parameters

    Returns:
        (is_valid, error_message, page, page_size)
    """
    try:
        page = int(page) if page not in (None, '') else 1
        page_size = int(page_size) if page_size not in (None, '') else default_page_size
    except (TypeError, ValueError):
        return False, 'page and page_size must be integers', 1, default_page_size

    if page < 1:
        return False, 'page must be at least 1', 1, default_page_size

    if page_size < 1 or page_size > MAX_PAGE_SIZE:
        return False, f'page_size must be between 1 and {MAX_PAGE_SIZE}', 1, default_page_size

    return True, None, page, page_size


def sanitize_string(value: Any, max_length: int = 255, default: str = '') -> str:
    """
    Strip and truncate a string input

    Args:
        value: Input value
        max_length: Maximum length
        default: Value used for empty input

    Returns:
        The cleaned string
    """
    if not value:
        return default

    if not isinstance(value, str):
        value = str(value)

    value = value.strip()

    if len(value) > max_length:
        value = value[:max_length]

    return value
