"""Coherence, consistency, and thematic scoring for clues and clue pairs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from clueflow.config import NarrativeCoherenceRules
from clueflow.domain.enums import (
    CheckKind,
    ClueType,
    ConditionType,
    Reliability,
    Severity,
    Verifiability,
)
from clueflow.domain.game import GameState, Scenario
from clueflow.domain.models import Clue, clamp

THEME_TERMS = {
    "medieval": ("castle", "knight", "sword", "tavern", "lord", "peasant"),
    "space": ("ship", "station", "alien", "planet", "cosmic", "void"),
    "modern": ("phone", "computer", "car", "office", "city", "technology"),
    "fantasy": ("magic", "wizard", "dragon", "spell", "enchanted", "mystical"),
}

DARK_TERMS = ("shadow", "dark", "ominous")

TONE_INDICATORS = {
    "ominous": ("dark", "shadow", "sinister", "foreboding", "ominous"),
    "mysterious": ("mystery", "hidden", "secret", "unknown", "puzzling"),
    "playful": ("amusing", "quirky", "unusual", "interesting", "surprising"),
}

COMPLEMENTARY_TYPES = (
    frozenset({ClueType.ROLE_HINT, ClueType.BEHAVIORAL}),
    frozenset({ClueType.ACTION_EVIDENCE, ClueType.RELATIONSHIP}),
    frozenset({ClueType.INVESTIGATION_RESULT, ClueType.ENVIRONMENTAL}),
)

HARD_SEVERITIES = (Severity.CRITICAL, Severity.MAJOR)


@dataclass(frozen=True)
class ConsistencyCheck:
    kind: CheckKind
    description: str
    severity: Severity
    clue_ids: Tuple[str, ...] = ()
    resolution: str = ""

    @property
    def is_hard(self) -> bool:
        return self.severity in HARD_SEVERITIES


@dataclass
class ValidationContext:
    """What a single clue is checked against."""

    scenario: Scenario
    player_count: int = 6
    current_round: int = 1
    other_clues: List[Clue] = field(default_factory=list)

    @classmethod
    def from_state(cls, state: GameState, other_clues: Optional[List[Clue]] = None) -> "ValidationContext":
        return cls(
            scenario=state.scenario,
            player_count=max(1, state.total_players),
            current_round=state.round,
            other_clues=list(other_clues or []),
        )


def _text(clue: Clue) -> str:
    return " ".join([clue.title, clue.content, *clue.tags]).lower()


def theme_terms(theme: str) -> set[str]:
    theme = theme.lower()
    terms = {word for word in theme.replace("-", " ").split() if len(word) > 2}
    for key, related in THEME_TERMS.items():
        if key in theme:
            terms.update(related)
    return terms


def tone_for(theme: str) -> str:
    theme = theme.lower()
    if "horror" in theme or "dark" in theme:
        return "ominous"
    if "comedy" in theme or "light" in theme:
        return "playful"
    return "mysterious"


def expected_difficulty(clue: Clue) -> float:
    expected = 3 + (clue.information_value - 5) * 0.3
    if clue.reliability is Reliability.RELIABLE:
        expected -= 0.5
    elif clue.reliability is Reliability.MISLEADING:
        expected += 1
    if clue.verifiability is Verifiability.EASILY_VERIFIED:
        expected -= 0.5
    elif clue.verifiability is Verifiability.UNVERIFIABLE:
        expected += 0.5
    return clamp(expected, 1, 5)


def coherence_score(clue: Clue) -> float:
    """Product of independent penalties, clamped to [0, 1]."""
    iv = clue.information_value
    is_herring = clue.family is ClueType.RED_HERRING
    score = 1.0

    if iv > 8 and clue.reliability is Reliability.MISLEADING:
        score *= 0.5
    if clue.verifiability is Verifiability.EASILY_VERIFIED and clue.reliability is Reliability.UNRELIABLE:
        score *= 0.3
    if clue.misdirection_level > 7 and not is_herring:
        score *= 0.4

    if is_herring and iv > 3:
        score *= 0.6
    if clue.difficulty.tier == 5 and iv < 6:
        score *= 0.7
    if clue.reliability is Reliability.RELIABLE and iv < 3:
        score *= 0.8

    score *= max(0.5, 1 - abs(clue.difficulty.tier - expected_difficulty(clue)) / 5)

    if not clue.reveal_conditions:
        score *= 0.5 if iv > 7 else 0.9
    elif iv > 8 and not any(condition.is_restrictive for condition in clue.reveal_conditions):
        score *= 0.7

    return clamp(score, 0.0, 1.0)


def is_contradictory(first: Clue, second: Clue) -> bool:
    """A strong guilt hint and a strong red herring aimed at the same player."""
    for hint, herring in ((first, second), (second, first)):
        if (
            hint.family is ClueType.ROLE_HINT
            and hint.information_value > 6
            and herring.family is ClueType.RED_HERRING
            and herring.misdirection_level > 7
            and hint.shares_target(herring)
        ):
            return True
    return False


def is_redundant(first: Clue, second: Clue) -> bool:
    return (
        first.clue_type == second.clue_type
        and first.shares_target(second)
        and abs(first.information_value - second.information_value) < 2
    )


def is_complementary(first: Clue, second: Clue) -> bool:
    types = {first.clue_type, second.clue_type}
    families = {first.family, second.family}
    return any(pair == types or pair == families for pair in COMPLEMENTARY_TYPES)


def consistency_checks(
    clue: Clue,
    context: ValidationContext,
    rules: NarrativeCoherenceRules,
) -> List[ConsistencyCheck]:
    issues = []
    if clue.information_value > 8 and clue.misdirection_level > 5:
        issues.append(
            ConsistencyCheck(
                kind=CheckKind.LOGICAL,
                description="High information value conflicts with high misdirection",
                severity=Severity.MAJOR,
                clue_ids=(clue.id,),
                resolution="Lower either the information value or the misdirection level",
            )
        )
    if rules.enforce_temporal_consistency and clue.context.round > context.current_round + 2:
        issues.append(
            ConsistencyCheck(
                kind=CheckKind.TEMPORAL,
                description=f"Clue references round {clue.context.round}, beyond round {context.current_round + 2}",
                severity=Severity.MAJOR,
                clue_ids=(clue.id,),
                resolution="Anchor the clue to the current round",
            )
        )
    for other in context.other_clues:
        if other.id == clue.id:
            continue
        if is_redundant(clue, other):
            issues.append(
                ConsistencyCheck(
                    kind=CheckKind.MECHANICAL,
                    description="Clue repeats another clue about the same player",
                    severity=Severity.MINOR,
                    clue_ids=(clue.id, other.id),
                    resolution="Merge the clues or vary their information value",
                )
            )
        if not rules.allow_contradictory_clues and is_contradictory(clue, other):
            issues.append(
                ConsistencyCheck(
                    kind=CheckKind.LOGICAL,
                    description="Clue contradicts another clue about the same player",
                    severity=Severity.CRITICAL,
                    clue_ids=(clue.id, other.id),
                    resolution="Remove one of the contradicting clues",
                )
            )
    return issues


def thematic_alignment(clue: Clue, scenario: Scenario) -> float:
    text = _text(clue)
    score = 1.0
    if not any(term in text for term in theme_terms(scenario.theme)):
        score *= 0.6
    setting = scenario.setting.lower()
    if setting and setting not in text and clue.context.scenario != scenario.name:
        score *= 0.7
    if tone_for(scenario.theme) == "ominous" and not any(term in text for term in DARK_TERMS):
        score *= 0.8
    return score


def theme_elements(clue: Clue, scenario: Scenario) -> set[str]:
    text = _text(clue)
    return {term for term in theme_terms(scenario.theme) if term in text} | set(clue.tags)


def pair_coherence(first: Clue, second: Clue, scenario: Scenario) -> float:
    score = 1.0
    if is_contradictory(first, second):
        score *= 0.3
    if is_redundant(first, second):
        score *= 0.7
    if is_complementary(first, second):
        score *= 1.2
    if not theme_elements(first, scenario) & theme_elements(second, scenario):
        score *= 0.8
    return clamp(score, 0.0, 2.0)


def set_coherence(clues: List[Clue], scenario: Scenario) -> float:
    scores = [
        pair_coherence(first, second, scenario)
        for index, first in enumerate(clues)
        for second in clues[index + 1 :]
    ]
    if not scores:
        return 1.0
    return sum(scores) / len(scores)


def earliest_round(clue: Clue) -> int:
    rounds = [
        _round_operand(condition.condition)
        for condition in clue.reveal_conditions
        if condition.type is ConditionType.ROUND_NUMBER
    ]
    rounds = [value for value in rounds if value is not None]
    return min(rounds) if rounds else 1


def _round_operand(text: str) -> Optional[int]:
    digits = "".join(ch for ch in text if ch.isdigit())
    return int(digits) if digits else None


def narrative_consistency(clues: Iterable[Clue], scenario: Scenario) -> float:
    clues = list(clues)
    if not clues:
        return 1.0
    terms = theme_terms(scenario.theme)
    themed = sum(1 for clue in clues if any(term in _text(clue) for term in terms)) / len(clues)

    ordered = sorted(clues, key=lambda clue: (earliest_round(clue), clue.id))
    created = [clue.context.round for clue in ordered]
    temporal = 1.0 if created == sorted(created) else 0.8

    indicators = TONE_INDICATORS[tone_for(scenario.theme)]
    tone = sum(1.0 if any(word in _text(clue) for word in indicators) else 0.7 for clue in clues) / len(clues)

    return themed * temporal * tone
