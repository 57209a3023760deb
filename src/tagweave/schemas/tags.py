"""Pydantic schemas for tag reports."""

from typing import Any

from pydantic import BaseModel, Field

# Delimiter GROUP_SORT() joins display columns with
DISPLAY_DELIMITER = ", "


def _split(joined: str | None) -> list[str]:
    if not joined:
        return []
    return joined.split(DISPLAY_DELIMITER)


class TagReportRow(BaseModel):
    """Summary of one canonical tag across all visible taggings."""

    canonical: str
    spellings: list[str] = Field(description="Distinct original spellings, sorted")
    taggers: list[str] = Field(description="Distinct taggers, sorted")
    namespaces: list[str] = Field(description="Distinct item namespaces, sorted")
    item_ids: list[str] = Field(description="Distinct tagged items, sorted")
    count: int = Field(description="Number of taggings in the group")

    @classmethod
    def from_row(cls, row: Any) -> "TagReportRow":
        """Build from a report query row (display columns are joined strings)."""
        # Row.count is the tuple method, so read columns through the mapping
        values = row._mapping
        return cls(
            canonical=values["canonical"],
            spellings=_split(values["spellings"]),
            taggers=_split(values["taggers"]),
            namespaces=_split(values["namespaces"]),
            item_ids=_split(values["item_ids"]),
            count=values["count"],
        )

    @property
    def spellings_display(self) -> str:
        return DISPLAY_DELIMITER.join(self.spellings)

    @property
    def taggers_display(self) -> str:
        return DISPLAY_DELIMITER.join(self.taggers)

    @property
    def namespaces_display(self) -> str:
        return DISPLAY_DELIMITER.join(self.namespaces)


class TagReport(BaseModel):
    """Rows of a tag report plus any non-fatal diagnostics."""

    rows: list[TagReportRow]
    order_by: str
    descending: bool = False
    diagnostics: list[str] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)
