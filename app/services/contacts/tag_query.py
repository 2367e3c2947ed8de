"""
Tag query codec for SendGrid segments.

Segments are stored on SendGrid as a SQL-like ``query_dsl`` string. This
module builds that string from a selection of tags and recovers the tag
selection from a stored string.

A tag matches when it appears as a quoted value inside the contact's
``tags`` custom field, so ``cat`` never matches ``category``::

    select contact_id, updated_at from contact_data where tags like '%\\"cat\\"%'

Tags are not escaped. Only a tag containing a double quote fails to survive
a decode; SendGrid may also reject the query it produces.
"""

import re
from collections.abc import Iterable

from app.services.errors import ValidationError

QUERY_PREFIX = "select contact_id, updated_at from contact_data where "
TAG_CLAUSE_TEMPLATE = r"""tags like '%\"{tag}\"%'"""
TAG_CLAUSE_JOINER = " OR "

# A backslash inside a tag is kept unless it starts the closing \" of the clause.
_TAG_CLAUSE_PATTERN = re.compile(
    r"""tags\s+like\s+'%\\"((?:[^\\"]|\\(?!"))*)\\"%'""", re.IGNORECASE
)


def _normalize_tag_selection(tags: Iterable[str] | None) -> list[str]:
    if tags is None or isinstance(tags, str):
        raise ValidationError("Tags must be provided as a list")

    selected: list[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            raise ValidationError("Tags must be strings")
        if not tag.strip() or tag in selected:
            continue
        selected.append(tag)

    if not selected:
        raise ValidationError("At least one tag must be selected")
    return selected


def build_tag_condition(tags: Iterable[str]) -> str:
    """Build the WHERE condition matching any of the given tags."""
    selected = _normalize_tag_selection(tags)
    return TAG_CLAUSE_JOINER.join(TAG_CLAUSE_TEMPLATE.format(tag=tag) for tag in selected)


def encode_tags(tags: Iterable[str]) -> str:
    """
    Encode a tag selection into a SendGrid segment query.

    Args:
        tags: Non-empty collection of tag strings. Duplicates and blank
            entries are dropped; first-seen order is kept.

    Returns:
        str: query_dsl accepted by the Segments v2 API

    Raises:
        ValidationError: If no usable tag is given
    """
    return f"{QUERY_PREFIX}{build_tag_condition(tags)}"


def decode_tags(query_dsl: str | None) -> list[str]:
    """
    Recover the tag selection from a segment query.

    Best effort: returns an empty list when the query does not follow the
    shape produced by ``encode_tags`` (e.g. it was written in the SendGrid UI).
    Tags come back unique, in order of appearance.
    """
    if not query_dsl or not isinstance(query_dsl, str):
        return []

    tags: list[str] = []
    for match in _TAG_CLAUSE_PATTERN.finditer(query_dsl):
        tag = match.group(1)
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def decode_tag_set(query_dsl: str | None) -> set[str]:
    return set(decode_tags(query_dsl))
