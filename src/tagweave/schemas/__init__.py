"""Schemas for tagweave results."""

from tagweave.schemas.tags import DISPLAY_DELIMITER, TagReport, TagReportRow

__all__ = [
    "DISPLAY_DELIMITER",
    "TagReport",
    "TagReportRow",
]
