"""Text normalization shared by the application and the SQL layer.

The same functions are registered as SQL functions on every store
connection (see ``tagweave.db.functions``), so grouping and equality in
queries always agree with what Python computes here.
"""

import re

# Characters dropped from tag text before case folding
_TAG_SEPARATORS = re.compile(r"[ _\-]")

_ID_SEPARATORS = re.compile(r"[/;]")
_ID_UNSAFE = re.compile(r"[^\w:.\-]")
_ID_REPEATED_COLONS = re.compile(r":{2,}")
_ID_REPEATED_UNDERSCORES = re.compile(r"_{2,}")


def canonicalize_tag(text: str) -> str:
    """Canonicalize a tag to its case-folded, separator-free identity.

    - Spaces, hyphens and underscores removed anywhere
    - Full Unicode case folding (``"Straße"`` -> ``"strasse"``)

    ``"My Tag"``, ``"my-tag"`` and ``"MY_TAG"`` all map to ``"mytag"``.
    """
    return _TAG_SEPARATORS.sub("", text).casefold()


def clean_id(raw: str) -> str:
    """Canonicalize an item id or namespace.

    Lower-cases, maps ``/`` and ``;`` to the ``:`` namespace separator and
    replaces anything that is not a word character, ``.``, ``-`` or ``:``
    with ``_``. Glob metacharacters therefore never survive.
    """
    cleaned = raw.strip().casefold()
    cleaned = _ID_SEPARATORS.sub(":", cleaned)
    cleaned = _ID_UNSAFE.sub("_", cleaned)
    cleaned = _ID_REPEATED_COLONS.sub(":", cleaned)
    cleaned = _ID_REPEATED_UNDERSCORES.sub("_", cleaned)
    return cleaned.strip(":._-")


def glob_namespace(namespace: str) -> str:
    """Build the GLOB pattern selecting every item below a namespace.

    An empty namespace yields ``*`` (the whole store).
    """
    return clean_id(namespace) + "*"


def get_namespace(item_id: str) -> str | None:
    """Return the namespace part of an item id, or None for root items."""
    namespace, sep, _ = item_id.rpartition(":")
    if not sep:
        return None
    return namespace


def group_sort(group: str | None, delimiter: str) -> str:
    """Sort a comma-joined group and re-join it with ``delimiter``.

    Empty members are dropped.
    """
    if not group:
        return ""
    members = sorted(member for member in group.split(",") if member)
    return delimiter.join(members)


def parse_tag_list(text: str) -> list[str]:
    """Split user input on commas into a list of tags.

    Whitespace around each tag is stripped, empty entries dropped and exact
    duplicates removed (first occurrence wins).
    """
    tags: list[str] = []
    for part in text.split(","):
        tag = part.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags
