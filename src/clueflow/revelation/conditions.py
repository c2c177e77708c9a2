"""Evaluator for declarative reveal conditions."""

from __future__ import annotations

import logging
import operator
import re
from typing import Callable, Dict, Optional

from clueflow.config import RevelationTuning
from clueflow.domain.enums import Alignment, ConditionType, GameEventKind
from clueflow.domain.game import GameState
from clueflow.domain.models import RevealCondition
from clueflow.util.rng import Rng

logger = logging.getLogger(__name__)

_ROUND = re.compile(r"round\s*([>=<]+)\s*(\d+)")
_ELIMINATION = re.compile(r"([\w_]+)\s*([>=<]+)\s*(\d+)")

COMPARATORS: Dict[str, Callable[[int, int], bool]] = {
    ">=": operator.ge,
    ">": operator.gt,
    "<=": operator.le,
    "<": operator.lt,
    "=": operator.eq,
    "==": operator.eq,
}

ABILITY_ALIASES = {
    "investigative_ability_used": "investigate",
}


def compare(actual: int, comparator: str, expected: int) -> bool:
    check = COMPARATORS.get(comparator)
    if check is None:
        logger.debug("Unknown comparator %r", comparator)
        return False
    return check(actual, expected)


def elimination_count(target: str, state: GameState) -> Optional[int]:
    if target in ("eliminated", "player_eliminated_count", "eliminated_count"):
        return len(state.eliminated_players)
    if target == "town_eliminated":
        return state.eliminated_with(Alignment.TOWN)
    if target == "mafia_eliminated":
        return state.eliminated_with(Alignment.MAFIA)
    return None


class ConditionEvaluator:
    def __init__(self, rng: Rng, tuning: Optional[RevelationTuning] = None) -> None:
        self.rng = rng
        self.tuning = tuning or RevelationTuning()

    def evaluate(self, condition: RevealCondition, state: GameState) -> bool:
        """Does the condition hold against the snapshot (before its probability gate)?"""
        text = condition.condition.strip().lower()
        if condition.type is ConditionType.ROUND_NUMBER:
            match = _ROUND.search(text)
            return bool(match) and compare(state.round, match.group(1), int(match.group(2)))
        if condition.type is ConditionType.PLAYER_ELIMINATED:
            match = _ELIMINATION.search(text)
            if not match:
                return False
            count = elimination_count(match.group(1), state)
            return count is not None and compare(count, match.group(2), int(match.group(3)))
        if condition.type is ConditionType.ABILITY_USED:
            return self._ability_used(text, state)
        if condition.type is ConditionType.VOTE_PATTERN:
            return self._vote_pattern(text, state)
        if condition.type is ConditionType.RANDOM:
            probability = condition.probability
            if probability is None:
                probability = self.tuning.default_random_probability
            return self.rng.chance(probability)
        raise ValueError(f"Unhandled condition type: {condition.type}")

    def passes(self, condition: RevealCondition, state: GameState) -> bool:
        """Evaluate, then roll the condition's own probability once."""
        if not self.evaluate(condition, state):
            return False
        if condition.type is ConditionType.RANDOM or condition.probability is None:
            return True
        return self.rng.chance(condition.probability)

    def _ability_used(self, text: str, state: GameState) -> bool:
        needles = {text, ABILITY_ALIASES.get(text, text)}
        for event in state.events:
            if event.kind is not GameEventKind.ABILITY_USED:
                continue
            description = event.description.lower()
            if any(needle in description for needle in needles):
                return True
            tagged = {str(event.data.get(key, "")).lower() for key in ("ability", "ability_type")}
            if needles & tagged:
                return True
        return False

    def _vote_pattern(self, text: str, state: GameState) -> bool:
        results = state.voting_results
        if results is None:
            return False
        if "unanimous" in text:
            return bool(results.votes) and len({vote.target_id for vote in results.votes}) == 1
        if "tie" in text:
            return results.tiebreaker is not None
        if "no_lynch" in text:
            return not results.eliminated
        logger.debug("Unknown vote pattern %r", text)
        return False
