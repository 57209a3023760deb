"""Tests for tag and id normalization."""

import pytest

from tagweave.normalize import (
    canonicalize_tag,
    clean_id,
    get_namespace,
    glob_namespace,
    group_sort,
    parse_tag_list,
)

# =============================================================================
# canonicalize_tag tests
# =============================================================================


def test_canonicalize_tag_collapses_spelling_variants() -> None:
    """Case, spaces, hyphens and underscores do not matter."""
    assert canonicalize_tag("My Tag") == "mytag"
    assert canonicalize_tag("my-tag") == "mytag"
    assert canonicalize_tag("MY_TAG") == "mytag"


@pytest.mark.parametrize(
    "text",
    ["My Tag", "  spaced  out ", "a-b_c d", "Straße", "ÀÉÎ-Õü", "", "---", "C++"],
)
def test_canonicalize_tag_is_idempotent(text: str) -> None:
    """Canonicalizing twice changes nothing."""
    once = canonicalize_tag(text)
    assert canonicalize_tag(once) == once


def test_canonicalize_tag_folds_unicode() -> None:
    """Non-ASCII letters are case folded, not only A-Z."""
    assert canonicalize_tag("ÄPFEL") == "äpfel"
    assert canonicalize_tag("Straße") == canonicalize_tag("STRASSE")
    assert canonicalize_tag("ΣΟΦΙΑ") == canonicalize_tag("σοφια")


def test_canonicalize_tag_keeps_other_punctuation() -> None:
    """Only the three separators are removed."""
    assert canonicalize_tag("C++") == "c++"
    assert canonicalize_tag("v1.2") == "v1.2"


def test_canonicalize_tag_only_separators() -> None:
    """A tag made only of separators is empty."""
    assert canonicalize_tag(" -_ ") == ""


# =============================================================================
# Item id helpers
# =============================================================================


def test_clean_id() -> None:
    """Ids are lower-cased with separators normalized."""
    assert clean_id("Wiki:Start") == "wiki:start"
    assert clean_id(":wiki/sub;page:") == "wiki:sub:page"
    assert clean_id("my page") == "my_page"
    assert clean_id("a::b") == "a:b"


def test_clean_id_strips_glob_characters() -> None:
    """Glob metacharacters cannot reach a GLOB pattern."""
    assert "*" not in clean_id("wi*ki")
    assert "?" not in clean_id("wi?ki")
    assert "[" not in clean_id("wi[k]i")


def test_glob_namespace() -> None:
    """Namespaces become prefix patterns, empty means everything."""
    assert glob_namespace("Wiki") == "wiki*"
    assert glob_namespace("") == "*"


def test_get_namespace() -> None:
    """The namespace is everything before the last colon."""
    assert get_namespace("wiki:sub:page") == "wiki:sub"
    assert get_namespace("wiki:page") == "wiki"
    assert get_namespace("page") is None


# =============================================================================
# Display helpers
# =============================================================================


def test_group_sort() -> None:
    """Members are sorted, empties dropped, delimiter replaced."""
    assert group_sort("b,a,,c", ", ") == "a, b, c"
    assert group_sort("", ", ") == ""
    assert group_sort(None, ", ") == ""


def test_parse_tag_list() -> None:
    """Comma separated input is split, stripped and de-duplicated."""
    assert parse_tag_list(" python, web dev ,,python, Python") == ["python", "web dev", "Python"]
    assert parse_tag_list("") == []
