"""Clue validation: single clues, whole sets, red herrings, and adjustments."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, List, Mapping, Optional

from clueflow.config import ValidationConfig
from clueflow.domain.enums import (
    AdjustmentType,
    Alignment,
    CheckKind,
    DIFFICULTY_ORDER,
    ClueType,
    EvidenceStrength,
    Priority,
    Reliability,
    Severity,
    Verifiability,
)
from clueflow.domain.game import GameState, Player, RoleDefinition, Scenario
from clueflow.domain.models import Clue, RedHerringClue, round_condition
from clueflow.validation import balance, flow
from clueflow.validation.balance import BalanceImpact
from clueflow.validation.coherence import (
    ConsistencyCheck,
    ValidationContext,
    coherence_score,
    consistency_checks,
    expected_difficulty,
    narrative_consistency,
    set_coherence,
    thematic_alignment,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recommendation:
    description: str
    priority: Priority
    adjustment: Optional[AdjustmentType] = None
    suggested_value: Any = None


@dataclass(frozen=True)
class ClueAdjustment:
    clue_id: str
    type: AdjustmentType
    reason: str
    priority: Priority
    value: Any = None


@dataclass
class ValidationResult:
    clue_id: str
    valid: bool
    coherence_score: float
    thematic_alignment: float
    balance_impact: BalanceImpact
    consistency_issues: List[ConsistencyCheck] = field(default_factory=list)
    recommendations: List[Recommendation] = field(default_factory=list)

    def adjustments(self) -> List[ClueAdjustment]:
        return [
            ClueAdjustment(
                clue_id=self.clue_id,
                type=rec.adjustment,
                reason=rec.description,
                priority=rec.priority,
                value=rec.suggested_value,
            )
            for rec in self.recommendations
            if rec.adjustment is not None
        ]


@dataclass
class QualityMetrics:
    average_information_value: float = 0.0
    information_variance: float = 0.0
    red_herring_effectiveness: float = 0.0
    investigative_ratio: float = 0.0
    narrative_immersion: float = 0.0
    strategic_depth: float = 0.0


@dataclass
class ClueSetAnalysis:
    total_information_value: int
    information_distribution: Dict[str, float]
    coherence_score: float
    information_advantage: Dict[str, float]
    win_probability_shift: Dict[str, float]
    balanced: bool
    narrative_consistency: float
    quality: QualityMetrics
    difficulty_increase: float = 0.0
    clue_results: Dict[str, ValidationResult] = field(default_factory=dict)
    adjustments: List[ClueAdjustment] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)


@dataclass
class RedHerringValidation:
    valid: bool
    issues: List[str] = field(default_factory=list)


class ClueValidator:
    def __init__(self, config: Optional[ValidationConfig] = None) -> None:
        self.config = config or ValidationConfig()

    def validate_clue(
        self,
        clue: Clue,
        context: ValidationContext,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> ValidationResult:
        config = self.config.merged(overrides)
        coherence = coherence_score(clue)
        issues = consistency_checks(clue, context, config.narrative_rules)
        alignment = thematic_alignment(clue, context.scenario)
        impact = balance.clue_balance_impact(clue, context.player_count, config.balance_tolerances)

        valid = coherence >= config.coherence_threshold and impact.acceptable
        if config.consistency_required and any(issue.is_hard for issue in issues):
            valid = False
        if config.narrative_rules.require_thematic_alignment and alignment < config.thematic_alignment_threshold:
            valid = False

        result = ValidationResult(
            clue_id=clue.id,
            valid=valid,
            coherence_score=coherence,
            thematic_alignment=alignment,
            balance_impact=impact,
            consistency_issues=issues,
        )
        result.recommendations = self._recommend(clue, result, context, config)
        return result

    def _recommend(
        self,
        clue: Clue,
        result: ValidationResult,
        context: ValidationContext,
        config: ValidationConfig,
    ) -> List[Recommendation]:
        recs = []
        # Must stay first: deduplication keeps the earliest adjustment of each type.
        limit = config.balance_tolerances.max_information_advantage
        if balance.max_advantage(result.balance_impact.information_advantage) > limit:
            recs.append(_balance_recommendation(clue, limit))

        if result.coherence_score < config.coherence_threshold:
            if clue.information_value > 8 and clue.reliability is Reliability.MISLEADING:
                recs.append(
                    Recommendation(
                        "Reduce information value for misleading clues",
                        Priority.HIGH,
                        AdjustmentType.INFORMATION_VALUE,
                        min(5, clue.information_value),
                    )
                )
            if clue.verifiability is Verifiability.EASILY_VERIFIED and clue.reliability is Reliability.UNRELIABLE:
                recs.append(
                    Recommendation(
                        "Easily verified clues should be reliable",
                        Priority.MEDIUM,
                        AdjustmentType.RELIABILITY,
                        Reliability.RELIABLE,
                    )
                )
            target = DIFFICULTY_ORDER[round(expected_difficulty(clue)) - 1]
            if target is not clue.difficulty:
                recs.append(
                    Recommendation(
                        f"Difficulty should be closer to {target}",
                        Priority.LOW,
                        AdjustmentType.DIFFICULTY,
                        target,
                    )
                )

        for issue in result.consistency_issues:
            if issue.severity is Severity.CRITICAL:
                continue
            if issue.kind is CheckKind.TEMPORAL:
                recs.append(
                    Recommendation(
                        issue.resolution,
                        Priority.MEDIUM,
                        AdjustmentType.REVEAL_CONDITIONS,
                        [round_condition(context.current_round, probability=0.8)],
                    )
                )
            elif issue.kind is CheckKind.LOGICAL:
                recs.append(
                    Recommendation(issue.resolution, Priority.HIGH, AdjustmentType.INFORMATION_VALUE, 5)
                )
            elif issue.kind is CheckKind.MECHANICAL:
                recs.append(
                    Recommendation(
                        issue.resolution,
                        Priority.LOW,
                        AdjustmentType.INFORMATION_VALUE,
                        max(1, clue.information_value - 2),
                    )
                )

        if result.thematic_alignment < config.thematic_alignment_threshold:
            recs.append(
                Recommendation(
                    f"Weave more {context.scenario.theme} imagery into the clue",
                    Priority.LOW,
                )
            )
        return recs

    def validate_clue_set(
        self,
        clues: List[Clue],
        scenario: Scenario,
        roles: List[RoleDefinition],
        state: Optional[GameState] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> ClueSetAnalysis:
        config = self.config.merged(overrides)
        player_count = state.total_players if state and state.total_players else max(1, len(roles))
        context = ValidationContext(
            scenario=scenario,
            player_count=player_count,
            current_round=state.round if state else 1,
            other_clues=list(clues),
        )
        results = {clue.id: self.validate_clue(clue, context, overrides) for clue in clues}
        advantage = balance.collective_advantage(clues)
        coherence = set_coherence(clues, scenario)
        limit = config.balance_tolerances.max_information_advantage

        analysis = ClueSetAnalysis(
            total_information_value=sum(clue.information_value for clue in clues),
            information_distribution=information_distribution(clues, roles),
            coherence_score=coherence,
            information_advantage=advantage,
            win_probability_shift=balance.collective_win_shift(clues, player_count),
            balanced=balance.max_advantage(advantage) <= limit,
            narrative_consistency=narrative_consistency(clues, scenario),
            quality=quality_metrics(clues, roles),
            difficulty_increase=sum(result.balance_impact.difficulty_increase for result in results.values()),
            clue_results=results,
        )
        analysis.adjustments = self._set_adjustments(clues, analysis, config)
        logger.info(
            "Validated %d clues: coherence %.2f, balanced=%s, %d adjustments",
            len(clues),
            coherence,
            analysis.balanced,
            len(analysis.adjustments),
        )
        return analysis

    def _set_adjustments(
        self,
        clues: List[Clue],
        analysis: ClueSetAnalysis,
        config: ValidationConfig,
    ) -> List[ClueAdjustment]:
        by_id = {clue.id: clue for clue in clues}
        adjustments: List[ClueAdjustment] = []

        for clue_id, result in analysis.clue_results.items():
            for issue in result.consistency_issues:
                if issue.severity is not Severity.CRITICAL:
                    continue
                # Drop the misdirection side of a contradiction.
                doomed = next(
                    (cid for cid in issue.clue_ids if by_id[cid].family is ClueType.RED_HERRING),
                    clue_id,
                )
                adjustments.append(ClueAdjustment(doomed, AdjustmentType.REMOVE, issue.description, Priority.HIGH))
            if not result.valid or result.coherence_score < config.coherence_threshold:
                adjustments.extend(result.adjustments())

        if not analysis.balanced:
            faction = max(analysis.information_advantage, key=lambda key: abs(analysis.information_advantage[key]))
            sign = 1 if analysis.information_advantage[faction] > 0 else -1
            contributors = [c for c in clues if c.is_pending and sign * balance.information_advantage(c)[faction] > 0]
            if contributors:
                strongest = max(contributors, key=lambda c: (sign * balance.information_advantage(c)[faction], c.id))
                reason = f"Set favours {faction} beyond tolerance"
                if strongest.family is ClueType.RED_HERRING:
                    adjustment = ClueAdjustment(
                        strongest.id,
                        AdjustmentType.MISDIRECTION,
                        reason,
                        Priority.HIGH,
                        max(0, strongest.misdirection_level - 2),
                    )
                else:
                    adjustment = ClueAdjustment(
                        strongest.id,
                        AdjustmentType.INFORMATION_VALUE,
                        reason,
                        Priority.HIGH,
                        max(1, strongest.information_value - 2),
                    )
                adjustments.append(adjustment)

        if analysis.coherence_score < config.coherence_threshold and clues:
            weakest = min(clues, key=lambda c: (analysis.clue_results[c.id].coherence_score, c.id))
            target = DIFFICULTY_ORDER[round(expected_difficulty(weakest)) - 1]
            adjustments.append(
                ClueAdjustment(weakest.id, AdjustmentType.DIFFICULTY, "Clue set lacks coherence", Priority.MEDIUM, target)
            )

        herrings = [clue for clue in clues if clue.family is ClueType.RED_HERRING]
        ratio = len(herrings) / len(clues) if clues else 0.0
        flow_rules = config.information_flow
        if clues and ratio < flow_rules.min_red_herring_ratio:
            analysis.issues.append(
                f"Red herring ratio {ratio:.2f} is below the minimum {flow_rules.min_red_herring_ratio:.2f}"
            )
        elif ratio > flow_rules.max_red_herring_ratio and herrings:
            weakest = min(herrings, key=lambda c: (c.misdirection_level, c.id))
            adjustments.append(
                ClueAdjustment(weakest.id, AdjustmentType.REMOVE, "Too many red herrings", Priority.MEDIUM)
            )

        ranked = sorted(adjustments, key=lambda a: (a.priority.rank, a.clue_id, str(a.type)))
        unique: Dict[tuple, ClueAdjustment] = {}
        for adjustment in ranked:
            unique.setdefault((adjustment.clue_id, adjustment.type), adjustment)
        return list(unique.values())

    def validate_red_herring(self, clue: RedHerringClue, players: List[Player]) -> RedHerringValidation:
        issues = []
        if clue.plausibility_score < 0.4:
            issues.append("Red herring is too implausible")
        elif clue.plausibility_score > 0.9:
            issues.append("Red herring may be too convincing")
        if clue.misdirection_level < 5:
            issues.append("Misdirection level is too low to mislead")
        if not clue.how_to_disprove:
            issues.append("Red herring needs at least one way to disprove it")
        mafia = {player.id for player in players if player.alignment is Alignment.MAFIA}
        if clue.misdirection_target in mafia or mafia.intersection(clue.target_players):
            issues.append("Red herring should not target actual mafia members")
        if clue.evidence_strength is EvidenceStrength.CONCLUSIVE:
            issues.append("Conclusive evidence cannot be recast as misdirection")
        return RedHerringValidation(valid=not issues, issues=issues)

    def calculate_clue_relevance(self, clue: Clue, state: GameState) -> float:
        return flow.calculate_clue_relevance(clue, state)

    def balance_clues_for_players(self, clues: List[Clue], players: List[Player], state: GameState) -> List[Clue]:
        return balance.balance_clues_for_players(clues, players, state)

    def enforce_balance(self, clues: List[Clue], overrides: Optional[Mapping[str, Any]] = None) -> List[Clue]:
        return balance.enforce_balance(clues, self.config.merged(overrides).balance_tolerances)

    def optimize_information_flow(
        self,
        clues: List[Clue],
        expected_length: int,
        current_round: int = 1,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> List[Clue]:
        constraints = self.config.merged(overrides).information_flow
        return flow.optimize_information_flow(clues, expected_length, constraints, current_round)


def _balance_recommendation(clue: Clue, limit: float) -> Recommendation:
    """Bring a lopsided clue back within the advantage limit, or drop it when it cannot be."""
    reason = "Clue hands one faction too much information"
    ceiling = balance.advantage_ceiling(limit)
    # A herring's advantage comes from its misdirection, a hint's from its value.
    if clue.family is ClueType.RED_HERRING:
        return Recommendation(reason, Priority.HIGH, AdjustmentType.MISDIRECTION, max(0, ceiling))
    if ceiling < 1:
        return Recommendation(reason, Priority.HIGH, AdjustmentType.REMOVE)
    return Recommendation(reason, Priority.HIGH, AdjustmentType.INFORMATION_VALUE, min(clue.information_value, ceiling))


def information_distribution(clues: List[Clue], roles: List[RoleDefinition]) -> Dict[str, float]:
    factions = sorted({str(role.alignment) for role in roles} | {str(Alignment.TOWN), str(Alignment.MAFIA)})
    distribution = {faction: 0.0 for faction in factions}
    for clue in clues:
        if clue.family in (ClueType.ROLE_HINT, ClueType.ALIGNMENT_HINT, ClueType.ACTION_EVIDENCE):
            distribution[Alignment.TOWN] += clue.information_value
        elif clue.family is ClueType.RED_HERRING:
            distribution[Alignment.MAFIA] += clue.misdirection_level / 2
        else:
            share = clue.information_value / len(factions)
            for faction in factions:
                distribution[faction] += share
    return distribution


def quality_metrics(clues: List[Clue], roles: List[RoleDefinition]) -> QualityMetrics:
    if not clues:
        return QualityMetrics()
    count = len(clues)
    values = [clue.information_value for clue in clues]
    mean = sum(values) / count
    herrings = [clue for clue in clues if clue.family is ClueType.RED_HERRING]
    investigative = [c for c in clues if c.family in (ClueType.ROLE_HINT, ClueType.ACTION_EVIDENCE)]
    return QualityMetrics(
        average_information_value=mean,
        information_variance=sum((value - mean) ** 2 for value in values) / count,
        red_herring_effectiveness=(
            sum(clue.misdirection_level for clue in herrings) / (len(herrings) * 10) if herrings else 0.0
        ),
        investigative_ratio=len(investigative) / count,
        narrative_immersion=sum(clue.narrative_weight for clue in clues) / (count * 10),
        strategic_depth=min(10.0, sum(values) / max(1, len(roles))),
    )


def apply_adjustments(clues: List[Clue], adjustments: List[ClueAdjustment]) -> List[Clue]:
    """Apply adjustments in order; revealed clues and unknown ids are skipped."""
    current = {clue.id: clue for clue in clues}
    removed: set[str] = set()
    for adjustment in adjustments:
        clue = current.get(adjustment.clue_id)
        if clue is None or adjustment.clue_id in removed or not clue.is_pending:
            continue
        if adjustment.type is AdjustmentType.REMOVE:
            logger.warning("Removing clue %s: %s", clue.id, adjustment.reason)
            removed.add(clue.id)
            continue
        field_name = {
            AdjustmentType.INFORMATION_VALUE: "information_value",
            AdjustmentType.RELIABILITY: "reliability",
            AdjustmentType.DIFFICULTY: "difficulty",
            AdjustmentType.REVEAL_CONDITIONS: "reveal_conditions",
            AdjustmentType.MISDIRECTION: "misdirection_level",
        }[adjustment.type]
        current[clue.id] = clue.with_changes(**{field_name: adjustment.value})
    return [current[clue.id] for clue in clues if clue.id not in removed]
