"""
Intent Classifier

Detects the learning mode, complexity tier, search need and user skill
level of a raw query by keyword-set matching.

Every decision is an ordered list of ``Rule(predicate, result)`` pairs
evaluated first-match-wins, over the externally configured keyword
table. Extending the taxonomy means editing ``keywords.json``, not this
module.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Final, Generic, TypeVar

from beacon.core.keywords import KeywordTable, contains_any
from beacon.models.schemas import Complexity, LearningMode, SearchType, UserLevel

logger = logging.getLogger(__name__)

S = TypeVar("S")
R = TypeVar("R")

LENGTH_COMPLEXITY_THRESHOLD: Final[int] = 100

# Modes that only search when the query is about careers
NO_SEARCH_MODES: Final[frozenset[LearningMode]] = frozenset(
    {LearningMode.DEBUG_CODE, LearningMode.ANALYZE_ALGORITHM}
)
ALWAYS_SEARCH_MODES: Final[frozenset[LearningMode]] = frozenset(
    {
        LearningMode.CAREER_ADVICE,
        LearningMode.CREATE_TUTORIAL,
        LearningMode.SYSTEM_DESIGN,
    }
)
SOFTWARE_SEARCH_MODES: Final[frozenset[LearningMode]] = frozenset(
    {
        LearningMode.SYSTEM_DESIGN,
        LearningMode.ANALYSE_CODE,
        LearningMode.CREATE_TUTORIAL,
        LearningMode.EXPLAIN_OR_DESIGN_ALGORITHM,
    }
)


@dataclass(frozen=True)
class Rule(Generic[S, R]):
    """One ``predicate -> result`` branch of a decision table."""

    predicate: Callable[[S], bool]
    result: R


def first_match(rules: Sequence[Rule[S, R]], value: S, default: R) -> R:
    """Result of the first rule whose predicate holds, else ``default``."""
    for rule in rules:
        if rule.predicate(value):
            return rule.result
    return default


def has_any(keywords: Sequence[str]) -> Callable[[str], bool]:
    """Predicate: the query contains at least one of ``keywords``."""
    return lambda query: contains_any(query, keywords)


@dataclass(frozen=True)
class SearchSignal:
    """Input of the search decision tables."""

    query: str
    mode: LearningMode


class IntentClassifier:
    """
    Keyword-driven intent detection.

    Usage::

        classifier = IntentClassifier(load_keyword_table())
        classifier.detect_learning_mode("fix this error in my code")
        # LearningMode.DEBUG_CODE

    Args:
        table: Keyword taxonomy. ``table.learning_modes`` order is the
            tie-break priority between modes.
    """

    def __init__(self, table: KeywordTable) -> None:
        self._table = table
        career = has_any(table.career)

        self._mode_rules: list[Rule[str, LearningMode]] = [
            Rule(has_any(entry.keywords), entry.mode) for entry in table.learning_modes
        ]

        self._complexity_rules: list[Rule[str, Complexity]] = [
            Rule(has_any(table.complexity.complex), Complexity.COMPLEX),
            Rule(has_any(table.complexity.simple), Complexity.SIMPLE),
            Rule(lambda q: len(q) > LENGTH_COMPLEXITY_THRESHOLD, Complexity.COMPLEX),
        ]

        self._search_rules: list[Rule[SearchSignal, bool]] = [
            Rule(lambda s: s.mode in NO_SEARCH_MODES and career(s.query), True),
            Rule(lambda s: s.mode in NO_SEARCH_MODES, False),
            Rule(lambda s: s.mode in ALWAYS_SEARCH_MODES, True),
            Rule(lambda s: career(s.query), True),
            Rule(lambda s: contains_any(s.query, table.question), True),
        ]

        self._search_type_rules: list[Rule[SearchSignal, SearchType]] = [
            Rule(lambda s: career(s.query), SearchType.RECENT),
            Rule(
                lambda s: contains_any(s.query, table.software_indicators),
                SearchType.SOFTWARE,
            ),
            Rule(lambda s: s.mode in SOFTWARE_SEARCH_MODES, SearchType.SOFTWARE),
        ]

        self._user_level_rules: list[Rule[str, UserLevel]] = [
            Rule(has_any(table.user_level.beginner), UserLevel.BEGINNER),
            Rule(has_any(table.user_level.advanced), UserLevel.ADVANCED),
        ]

    @property
    def table(self) -> KeywordTable:
        return self._table

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def detect_learning_mode(self, query: str) -> LearningMode:
        """First mode whose keyword set matches; ``default`` when none does."""
        mode = first_match(self._mode_rules, query.lower(), LearningMode.DEFAULT)
        logger.debug("Detected learning mode %s", mode)
        return mode

    def detect_complexity(self, query: str) -> Complexity:
        """
        ``complex`` on a complexity term, else ``simple`` on a simplicity
        term, else ``complex`` only for queries over 100 characters.
        """
        return first_match(self._complexity_rules, query.lower(), Complexity.SIMPLE)

    def should_perform_search(self, query: str, mode: LearningMode) -> bool:
        """
        Whether live web context is worth fetching.

        Debugging and algorithm analysis search only for career questions;
        career advice, tutorials and system design always search; every
        other mode searches on a career or trend/relevance indicator.
        """
        return first_match(
            self._search_rules, SearchSignal(query.lower(), mode), False
        )

    def get_search_type(self, query: str, mode: LearningMode) -> SearchType:
        """Career terms: recent. Software terms or modes: software. Else general."""
        return first_match(
            self._search_type_rules,
            SearchSignal(query.lower(), mode),
            SearchType.GENERAL,
        )

    def detect_user_level(self, query: str) -> UserLevel:
        return first_match(
            self._user_level_rules, query.lower(), UserLevel.INTERMEDIATE
        )
