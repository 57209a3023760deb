"""Interfaces to the collaborators tagweave relies on.

Access control, user identity and page languages are owned by the host
application. They are handed to every operation through a
``TaggingContext``.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Protocol, runtime_checkable

from tagweave.config import Settings, get_settings

# Tagger used for every tagging in single user mode
SINGLE_USER_TAGGER = "auto"


class AccessLevel(IntEnum):
    """Permission levels, compared numerically."""

    NONE = 0
    READ = 1
    EDIT = 2
    CREATE = 4
    UPLOAD = 8
    DELETE = 16
    ADMIN = 255


@runtime_checkable
class AccessOracle(Protocol):
    """Computes the caller's permission level for an item."""

    def access_level(self, item_id: str) -> int: ...


@runtime_checkable
class TranslationResolver(Protocol):
    """Resolves the language an item is written in."""

    def language_of(self, item_id: str) -> str: ...


@dataclass(frozen=True)
class StaticAccessOracle:
    """Grants the same level on every item."""

    level: int = AccessLevel.ADMIN

    def access_level(self, item_id: str) -> int:
        return int(self.level)


@dataclass(frozen=True)
class MappingAccessOracle:
    """Grants levels per namespace; the longest matching prefix wins.

    Keys are namespaces (``"wiki"`` matches ``"wiki:start"`` and
    ``"wiki:sub:page"``) or full item ids.
    """

    levels: Mapping[str, int]
    default: int = AccessLevel.NONE

    def access_level(self, item_id: str) -> int:
        best: str | None = None
        for prefix in self.levels:
            if item_id == prefix or item_id.startswith(prefix + ":"):
                if best is None or len(prefix) > len(best):
                    best = prefix
        if best is None:
            return int(self.default)
        return int(self.levels[best])


@dataclass(frozen=True)
class NamespaceTranslationResolver:
    """Treats a leading namespace named after a language as the item language."""

    languages: tuple[str, ...]
    default: str

    def language_of(self, item_id: str) -> str:
        head, sep, _ = item_id.partition(":")
        if sep and head in self.languages:
            return head
        return self.default


@dataclass(frozen=True)
class TaggingContext:
    """Per-request view of the caller and the host's collaborators."""

    user: str | None
    access: AccessOracle
    is_admin: bool = False
    translation: TranslationResolver | None = None
    single_user_mode: bool = False
    default_language: str = field(default_factory=lambda: get_settings().default_language)

    @classmethod
    def from_settings(
        cls,
        user: str | None,
        access: AccessOracle,
        *,
        is_admin: bool = False,
        settings: Settings | None = None,
    ) -> "TaggingContext":
        """Build a context whose defaults come from settings."""
        settings = settings or get_settings()
        translation = None
        if settings.translations:
            translation = NamespaceTranslationResolver(
                tuple(settings.translations), settings.default_language
            )
        return cls(
            user=user,
            access=access,
            is_admin=is_admin,
            translation=translation,
            single_user_mode=settings.single_user_mode,
            default_language=settings.default_language,
        )

    @property
    def tagger(self) -> str | None:
        """Tagger name used when storing or filtering the caller's own tags."""
        if self.user is None:
            return None
        if self.single_user_mode:
            return SINGLE_USER_TAGGER
        return self.user

    def language_of(self, item_id: str) -> str:
        if self.translation is None:
            return self.default_language
        return self.translation.language_of(item_id)

    def can_edit(self, item_id: str) -> bool:
        return self.access.access_level(item_id) >= AccessLevel.EDIT

    def can_edit_any(self, item_ids: list[str]) -> bool:
        """Whether the caller may edit at least one of the given items."""
        return any(self.can_edit(item_id) for item_id in item_ids)
