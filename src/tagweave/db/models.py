"""SQLAlchemy models for tagweave."""

from sqlalchemy import Index, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""


class Tagging(Base):
    """One user's association of one tag text with one item.

    Tag text is stored exactly as entered; canonical identity is computed
    at query time with the CLEANTAG() SQL function.
    """

    __tablename__ = "taggings"

    item_id: Mapped[str] = mapped_column(Text, primary_key=True)
    tagger: Mapped[str] = mapped_column(Text, primary_key=True)
    tag: Mapped[str] = mapped_column(Text, primary_key=True)
    language: Mapped[str] = mapped_column(Text, nullable=False, default="")

    __table_args__ = (Index("idx_taggings_tagger", "tagger"),)

    def __repr__(self) -> str:
        return f"Tagging(item_id={self.item_id!r}, tagger={self.tagger!r}, tag={self.tag!r})"
