"""
Keyword Taxonomy

The intent classifier, model selector and web search augmenter all decide
by keyword-set matching. The sets live in ``beacon/data/keywords.json`` so
the taxonomy can be extended without touching control flow; point
``KEYWORDS_PATH`` at another file to override it.

All keywords are normalized to lowercase on load and matched as
case-insensitive substrings of the query.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from functools import lru_cache
from pathlib import Path
from typing import Final

from pydantic import BaseModel, Field, field_validator, model_validator

from beacon.core.config import settings
from beacon.models.schemas import LearningMode

logger = logging.getLogger(__name__)

DEFAULT_KEYWORDS_PATH: Final[Path] = (
    Path(__file__).resolve().parent.parent / "data" / "keywords.json"
)


def _normalize(keywords: Iterable[str]) -> list[str]:
    """Lowercase, strip and de-duplicate keywords, preserving order."""
    seen: dict[str, None] = {}
    for keyword in keywords:
        cleaned = keyword.strip().lower()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


def contains_any(text: str, keywords: Iterable[str]) -> bool:
    """True if any keyword occurs in ``text`` (case-insensitive substring)."""
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


class ModeKeywords(BaseModel):
    """Keyword set that identifies one learning mode."""

    mode: LearningMode
    keywords: list[str] = Field(min_length=1)

    @field_validator("keywords")
    @classmethod
    def lowercase_keywords(cls, v: list[str]) -> list[str]:
        return _normalize(v)


class ComplexityKeywords(BaseModel):
    complex: list[str] = Field(default_factory=list)
    simple: list[str] = Field(default_factory=list)

    @field_validator("complex", "simple")
    @classmethod
    def lowercase_keywords(cls, v: list[str]) -> list[str]:
        return _normalize(v)


class UserLevelKeywords(BaseModel):
    beginner: list[str] = Field(default_factory=list)
    advanced: list[str] = Field(default_factory=list)

    @field_validator("beginner", "advanced")
    @classmethod
    def lowercase_keywords(cls, v: list[str]) -> list[str]:
        return _normalize(v)


class KeywordTable(BaseModel):
    """
    Complete ``{category -> keyword set}`` table.

    ``learning_modes`` is ordered: the first matching entry wins, so
    its order is the tie-break priority between modes.

    Attributes:
        learning_modes: Ordered mode keyword sets.
        complexity: Complexity and simplicity indicators.
        software_indicators: Terms that mark a software-engineering query.
        software_context: Technologies that make a search query specific
            enough to skip the programming disambiguator.
        career: Any career-related term.
        career_tactical: Short-term career questions (light model).
        career_strategic: Long-term career planning (heavy model).
        question: "Is this still relevant / trending" style indicators.
        news: Recency/change terms that pull news results into a search.
        user_level: Skill-level phrases.
        technical_domains: Curated engineering domains for search scoping.
        technical_terms: Terms that flag a search result as technical.
    """

    learning_modes: list[ModeKeywords]
    complexity: ComplexityKeywords = Field(default_factory=ComplexityKeywords)
    software_indicators: list[str] = Field(default_factory=list)
    software_context: list[str] = Field(default_factory=list)
    career: list[str] = Field(default_factory=list)
    career_tactical: list[str] = Field(default_factory=list)
    career_strategic: list[str] = Field(default_factory=list)
    question: list[str] = Field(default_factory=list)
    news: list[str] = Field(default_factory=list)
    user_level: UserLevelKeywords = Field(default_factory=UserLevelKeywords)
    technical_domains: list[str] = Field(default_factory=list)
    technical_terms: list[str] = Field(default_factory=list)

    @field_validator(
        "software_indicators",
        "software_context",
        "career",
        "career_tactical",
        "career_strategic",
        "question",
        "news",
        "technical_domains",
        "technical_terms",
    )
    @classmethod
    def lowercase_keywords(cls, v: list[str]) -> list[str]:
        return _normalize(v)

    @model_validator(mode="after")
    def check_learning_modes(self) -> KeywordTable:
        modes = [entry.mode for entry in self.learning_modes]
        if len(modes) != len(set(modes)):
            raise ValueError("learning_modes must not repeat a mode")
        if LearningMode.DEFAULT in modes:
            raise ValueError("'default' is the fallback mode and takes no keywords")
        return self

    def keywords_for(self, mode: LearningMode) -> list[str]:
        """Keyword set of ``mode`` (empty for modes without one)."""
        for entry in self.learning_modes:
            if entry.mode == mode:
                return entry.keywords
        return []


def load_keyword_table(path: str | Path | None = None) -> KeywordTable:
    """
    Load and validate a keyword table.

    Args:
        path: JSON file to read. Defaults to ``KEYWORDS_PATH`` if set,
            else the bundled ``beacon/data/keywords.json``.

    Returns:
        Validated KeywordTable with lowercase keywords.

    Raises:
        FileNotFoundError: If the file does not exist.
        pydantic.ValidationError: If the file does not match the schema.
    """
    resolved = Path(path or settings.KEYWORDS_PATH or DEFAULT_KEYWORDS_PATH)
    table = KeywordTable.model_validate_json(resolved.read_text(encoding="utf-8"))
    logger.info(
        "Keyword table loaded from %s (%d learning modes)",
        resolved,
        len(table.learning_modes),
    )
    return table


@lru_cache(maxsize=1)
def default_keyword_table() -> KeywordTable:
    """Bundled keyword table, loaded once per process."""
    return load_keyword_table(DEFAULT_KEYWORDS_PATH)
