"""
Cache key construction for goals list pages.

Keys have the fixed layout::

    goals:u=<userId>:p=<page>:ps=<pageSize>:s=<search>:st=<status>:pr=<priority>

and every page cached for a user is tracked in the set ``tag:goals:u=<userId>``.
"""

import re
from uuid import UUID

ABSENT = "-"
TAG_PREFIX = "tag:goals:u="

_WHITESPACE = re.compile(r"\s+")


def normalize(value: str | None) -> str:
    """
    Canonical form of a filter value.

    Blank or missing values become ``"-"``; anything else is trimmed,
    lowercased and has internal whitespace runs collapsed to one space.
    ``str.lower`` does not depend on the process locale.
    """
    if value is None or not value.strip():
        return ABSENT
    return _WHITESPACE.sub(" ", value.strip().lower())


def _escape(value: str) -> str:
    # keeps ':' out of field values so distinct tuples never share a key
    return value.replace("%", "%25").replace(":", "%3A")


def build_goals_page_key(
    user_id: UUID | str,
    page: int,
    page_size: int,
    search: str | None,
    status: str | None,
    priority: str | None,
) -> str:
    """Build the cache key for one goals page. Paging must already be clamped."""
    return (
        f"goals:u={user_id}:p={page}:ps={page_size}"
        f":s={_escape(normalize(search))}"
        f":st={_escape(normalize(status))}"
        f":pr={_escape(normalize(priority))}"
    )


def tag_key(user_id: UUID | str) -> str:
    return f"{TAG_PREFIX}{user_id}"
