"""
Intent Classifier Unit Tests

Verifies keyword-driven detection of learning mode, complexity, search
need, search type and user level against the bundled keyword table.

No external services required — runs entirely offline.
"""

from __future__ import annotations

import pytest

from beacon.core.keywords import KeywordTable
from beacon.models.schemas import Complexity, LearningMode, SearchType, UserLevel
from beacon.services.intent import IntentClassifier, Rule, first_match


@pytest.fixture
def classifier(keyword_table: KeywordTable) -> IntentClassifier:
    return IntentClassifier(keyword_table)


# ---------------------------------------------------------------------------
# Decision tables
# ---------------------------------------------------------------------------


class TestFirstMatch:
    def test_first_matching_rule_wins(self) -> None:
        rules = [
            Rule(lambda n: n > 10, "big"),
            Rule(lambda n: n > 0, "positive"),
        ]

        assert first_match(rules, 50, "other") == "big"
        assert first_match(rules, 5, "other") == "positive"
        assert first_match(rules, -1, "other") == "other"

    def test_empty_table_returns_default(self) -> None:
        assert first_match([], "anything", 42) == 42


# ---------------------------------------------------------------------------
# Learning mode
# ---------------------------------------------------------------------------


class TestLearningMode:
    @pytest.mark.parametrize(
        ("query", "expected"),
        [
            ("fix this error in my code", LearningMode.DEBUG_CODE),
            ("design a system for 1m users", LearningMode.SYSTEM_DESIGN),
            ("what is the big o of binary search", LearningMode.ANALYZE_ALGORITHM),
            ("tutorial on react hooks", LearningMode.CREATE_TUTORIAL),
            ("please review my pull request", LearningMode.CODE_REVIEW),
            ("career growth tips", LearningMode.CAREER_ADVICE),
            ("what does this do", LearningMode.ANALYSE_CODE),
            ("hello there", LearningMode.DEFAULT),
        ],
    )
    def test_detection(
        self, classifier: IntentClassifier, query: str, expected: LearningMode
    ) -> None:
        assert classifier.detect_learning_mode(query) == expected

    def test_table_order_breaks_ties(self, classifier: IntentClassifier) -> None:
        """Debug keywords are listed before algorithm keywords."""
        assert (
            classifier.detect_learning_mode("fix the sorting algorithm")
            == LearningMode.DEBUG_CODE
        )

    def test_case_insensitive(self, classifier: IntentClassifier) -> None:
        assert classifier.detect_learning_mode("FIX THIS") == LearningMode.DEBUG_CODE

    def test_explain_or_design_is_never_detected(
        self, classifier: IntentClassifier
    ) -> None:
        assert (
            classifier.detect_learning_mode("explain or design an algorithm")
            != LearningMode.EXPLAIN_OR_DESIGN_ALGORITHM
        )


# ---------------------------------------------------------------------------
# Complexity
# ---------------------------------------------------------------------------


class TestComplexity:
    def test_complex_term_wins_over_simple_term(
        self, classifier: IntentClassifier
    ) -> None:
        assert (
            classifier.detect_complexity("simple production deployment")
            == Complexity.COMPLEX
        )

    def test_simple_term(self, classifier: IntentClassifier) -> None:
        assert classifier.detect_complexity("what is a closure") == Complexity.SIMPLE

    def test_long_query_is_complex(self, classifier: IntentClassifier) -> None:
        assert classifier.detect_complexity("z" * 101) == Complexity.COMPLEX

    def test_length_threshold_is_exclusive(self, classifier: IntentClassifier) -> None:
        assert classifier.detect_complexity("z" * 100) == Complexity.SIMPLE

    def test_defaults_to_simple(self, classifier: IntentClassifier) -> None:
        assert classifier.detect_complexity("closures") == Complexity.SIMPLE


# ---------------------------------------------------------------------------
# Search decisions
# ---------------------------------------------------------------------------


class TestShouldPerformSearch:
    def test_debug_searches_only_for_career_questions(
        self, classifier: IntentClassifier
    ) -> None:
        assert not classifier.should_perform_search(
            "fix this bug", LearningMode.DEBUG_CODE
        )
        assert classifier.should_perform_search(
            "fix my resume parser", LearningMode.DEBUG_CODE
        )

    def test_algorithm_analysis_never_searches_otherwise(
        self, classifier: IntentClassifier
    ) -> None:
        assert not classifier.should_perform_search(
            "is it worth using quicksort", LearningMode.ANALYZE_ALGORITHM
        )

    @pytest.mark.parametrize(
        "mode",
        [
            LearningMode.CAREER_ADVICE,
            LearningMode.CREATE_TUTORIAL,
            LearningMode.SYSTEM_DESIGN,
        ],
    )
    def test_always_search_modes(
        self, classifier: IntentClassifier, mode: LearningMode
    ) -> None:
        assert classifier.should_perform_search("anything", mode)

    def test_question_indicator(self, classifier: IntentClassifier) -> None:
        assert classifier.should_perform_search(
            "is it worth refactoring now", LearningMode.CODE_REVIEW
        )

    def test_career_indicator(self, classifier: IntentClassifier) -> None:
        assert classifier.should_perform_search(
            "should i learn rust", LearningMode.DEFAULT
        )

    def test_no_indicator(self, classifier: IntentClassifier) -> None:
        assert not classifier.should_perform_search(
            "review this function", LearningMode.CODE_REVIEW
        )


class TestSearchType:
    def test_career_terms_are_recent(self, classifier: IntentClassifier) -> None:
        assert (
            classifier.get_search_type("how to negotiate salary", LearningMode.DEFAULT)
            == SearchType.RECENT
        )

    def test_software_indicator(self, classifier: IntentClassifier) -> None:
        assert (
            classifier.get_search_type("best react library", LearningMode.DEFAULT)
            == SearchType.SOFTWARE
        )

    def test_software_mode(self, classifier: IntentClassifier) -> None:
        assert (
            classifier.get_search_type("scale a chat app", LearningMode.SYSTEM_DESIGN)
            == SearchType.SOFTWARE
        )

    def test_general_fallback(self, classifier: IntentClassifier) -> None:
        assert (
            classifier.get_search_type("weather tomorrow", LearningMode.DEFAULT)
            == SearchType.GENERAL
        )


# ---------------------------------------------------------------------------
# User level
# ---------------------------------------------------------------------------


class TestUserLevel:
    @pytest.mark.parametrize(
        ("query", "expected"),
        [
            ("I just started with python", UserLevel.BEGINNER),
            ("expert tips for asyncio", UserLevel.ADVANCED),
            ("beginner question about a complex topic", UserLevel.BEGINNER),
            ("decorators", UserLevel.INTERMEDIATE),
        ],
    )
    def test_detection(
        self, classifier: IntentClassifier, query: str, expected: UserLevel
    ) -> None:
        assert classifier.detect_user_level(query) == expected
