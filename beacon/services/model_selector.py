"""
Model/Prompt Selector

Maps (learning mode, complexity, raw query) to a generation model tier,
a temperature and a system prompt.

Tier selection:
    - Start from a static mode → tier table (heavy for system design,
      algorithm work and tutorials; light otherwise).
    - Escalate light → heavy for complex debugging/code-analysis queries
      that also carry a complexity term.
    - De-escalate heavy → light for simple tutorial/system-design queries
      that also carry a simplicity term.
    - Career advice has its own rule: strategic planning language gets the
      heavy tier, tactical questions stay light.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final

from beacon.core.keywords import KeywordTable, contains_any
from beacon.models.schemas import Complexity, LearningMode, ModelTier
from beacon.services.intent import IntentClassifier, Rule, first_match, has_any
from beacon.services.prompts import build_mode_prompt

logger = logging.getLogger(__name__)

MODE_TIERS: Final[dict[LearningMode, ModelTier]] = {
    LearningMode.SYSTEM_DESIGN: ModelTier.HEAVY,
    LearningMode.EXPLAIN_OR_DESIGN_ALGORITHM: ModelTier.HEAVY,
    LearningMode.ANALYZE_ALGORITHM: ModelTier.HEAVY,
    LearningMode.CREATE_TUTORIAL: ModelTier.HEAVY,
    LearningMode.DEBUG_CODE: ModelTier.LIGHT,
    LearningMode.CODE_REVIEW: ModelTier.LIGHT,
    LearningMode.CAREER_ADVICE: ModelTier.LIGHT,
    LearningMode.ANALYSE_CODE: ModelTier.LIGHT,
    LearningMode.DEFAULT: ModelTier.LIGHT,
}

# Lower for analytical modes, higher for tutorial generation
MODE_TEMPERATURES: Final[dict[LearningMode, float]] = {
    LearningMode.SYSTEM_DESIGN: 0.4,
    LearningMode.EXPLAIN_OR_DESIGN_ALGORITHM: 0.3,
    LearningMode.ANALYZE_ALGORITHM: 0.1,
    LearningMode.CREATE_TUTORIAL: 0.5,
    LearningMode.DEBUG_CODE: 0.1,
    LearningMode.CODE_REVIEW: 0.2,
    LearningMode.CAREER_ADVICE: 0.4,
    LearningMode.ANALYSE_CODE: 0.2,
    LearningMode.DEFAULT: 0.2,
}
DEFAULT_TEMPERATURE: Final[float] = 0.3

ESCALATION_MODES: Final[frozenset[LearningMode]] = frozenset(
    {LearningMode.DEBUG_CODE, LearningMode.ANALYSE_CODE}
)
DEESCALATION_MODES: Final[frozenset[LearningMode]] = frozenset(
    {LearningMode.CREATE_TUTORIAL, LearningMode.SYSTEM_DESIGN}
)


@dataclass(frozen=True)
class ModelRecommendation:
    """Model choice for a query, with a human-readable justification."""

    learning_mode: LearningMode
    complexity: Complexity
    tier: ModelTier
    model: str
    temperature: float
    reasoning: str


class ModelSelector:
    """
    Chooses model tier, concrete model, temperature and system prompt.

    Usage::

        selector = ModelSelector("gpt-4o-mini", "gpt-4o", table)
        tier = selector.select_optimal_model(mode, query, complexity)
        model = selector.model_name(tier)
        prompt = selector.get_prompt_for_learning_mode(mode)

    Args:
        light_model: Model identifier of the light tier.
        heavy_model: Model identifier of the heavy tier.
        table: Keyword taxonomy (complexity and career keyword sets).
    """

    def __init__(self, light_model: str, heavy_model: str, table: KeywordTable) -> None:
        self._models = {ModelTier.LIGHT: light_model, ModelTier.HEAVY: heavy_model}
        self._table = table
        self._classifier = IntentClassifier(table)
        self._career_rules: list[Rule[str, ModelTier]] = [
            Rule(has_any(table.career_strategic), ModelTier.HEAVY),
            Rule(has_any(table.career_tactical), ModelTier.LIGHT),
        ]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def select_optimal_model(
        self,
        mode: LearningMode,
        query: str,
        complexity: Complexity | None = None,
    ) -> ModelTier:
        """Model tier for ``mode``, adjusted by complexity and the raw query."""
        query_lower = query.lower()

        if mode == LearningMode.CAREER_ADVICE:
            return first_match(self._career_rules, query_lower, ModelTier.LIGHT)

        tier = MODE_TIERS.get(mode, ModelTier.LIGHT)

        if (
            complexity == Complexity.COMPLEX
            and tier == ModelTier.LIGHT
            and mode in ESCALATION_MODES
            and contains_any(query_lower, self._table.complexity.complex)
        ):
            logger.debug("Escalating %s query to heavy tier", mode)
            return ModelTier.HEAVY

        if (
            complexity == Complexity.SIMPLE
            and tier == ModelTier.HEAVY
            and mode in DEESCALATION_MODES
            and contains_any(query_lower, self._table.complexity.simple)
        ):
            logger.debug("De-escalating %s query to light tier", mode)
            return ModelTier.LIGHT

        return tier

    def model_name(self, tier: ModelTier) -> str:
        return self._models[tier]

    def temperature_for(self, mode: LearningMode) -> float:
        return MODE_TEMPERATURES.get(mode, DEFAULT_TEMPERATURE)

    def get_prompt_for_learning_mode(self, mode: LearningMode) -> str:
        """Shared base prompt + mode directive + response requirements."""
        return build_mode_prompt(mode)

    def get_model_recommendation(
        self,
        query: str,
        mode: LearningMode | None = None,
        complexity: Complexity | None = None,
    ) -> ModelRecommendation:
        """
        Model choice without calling any provider.

        Args:
            query: Raw user query.
            mode: Explicit learning mode override (detected when None).
            complexity: Explicit complexity override (detected when None).
        """
        mode = mode or self._classifier.detect_learning_mode(query)
        complexity = complexity or self._classifier.detect_complexity(query)
        tier = self.select_optimal_model(mode, query, complexity)

        if mode == LearningMode.CAREER_ADVICE:
            reasoning = (
                "Strategic career planning detected - heavy model for depth"
                if tier == ModelTier.HEAVY
                else "Tactical career question detected - light model for focus"
            )
        elif complexity == Complexity.COMPLEX and tier == ModelTier.HEAVY:
            reasoning = "Complex query detected - heavy model for deeper analysis"
        elif complexity == Complexity.SIMPLE and tier == ModelTier.LIGHT:
            reasoning = "Simple query detected - light model for an efficient response"
        else:
            reasoning = f"Detected mode: {mode}, recommended tier: {tier}"

        return ModelRecommendation(
            learning_mode=mode,
            complexity=complexity,
            tier=tier,
            model=self.model_name(tier),
            temperature=self.temperature_for(mode),
            reasoning=reasoning,
        )
