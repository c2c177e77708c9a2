"""Reveal timing across the expected game length, and per-phase relevance."""

from __future__ import annotations

from collections import defaultdict
import logging
from typing import Dict, List

from clueflow.config import InformationFlowConstraints
from clueflow.domain.enums import ClueType, ConditionType, GamePhase
from clueflow.domain.game import GameState
from clueflow.domain.models import Clue, RevealCondition, clamp, round_condition

logger = logging.getLogger(__name__)

HIGH_VALUE = 7

PHASE_MULTIPLIERS: Dict[GamePhase, Dict[ClueType, float]] = {
    GamePhase.DAY_DISCUSSION: {
        ClueType.BEHAVIORAL: 1.3,
        ClueType.RELATIONSHIP: 1.2,
        ClueType.ENVIRONMENTAL: 1.1,
    },
    GamePhase.DAY_VOTING: {
        ClueType.ACTION_EVIDENCE: 1.4,
        ClueType.ROLE_HINT: 1.3,
        ClueType.ALIGNMENT_HINT: 1.2,
    },
    GamePhase.NIGHT_ACTIONS: {
        ClueType.INVESTIGATION_RESULT: 1.5,
        ClueType.ENVIRONMENTAL: 0.8,
    },
}


def optimal_reveal_round(clue: Clue, expected_length: int) -> int:
    timing = expected_length / 2
    if clue.information_value > HIGH_VALUE:
        timing += expected_length * 0.2
    if clue.family is ClueType.RED_HERRING:
        timing -= expected_length * 0.2
    if clue.family is ClueType.ACTION_EVIDENCE:
        timing = max(2, timing - 1)
    return int(clamp(round(timing), 1, expected_length))


def timing_conditions(clue: Clue, reveal_round: int) -> List[RevealCondition]:
    conditions = [round_condition(reveal_round, probability=0.8)]
    if clue.information_value > 8:
        conditions.append(
            RevealCondition(
                type=ConditionType.PLAYER_ELIMINATED,
                condition="player_eliminated_count >= 1",
                probability=0.6,
            )
        )
    if clue.family is ClueType.ACTION_EVIDENCE:
        conditions.append(
            RevealCondition(
                type=ConditionType.ABILITY_USED,
                condition="investigative_ability_used",
                probability=0.9,
            )
        )
    return conditions


def optimize_information_flow(
    clues: List[Clue],
    expected_length: int,
    constraints: InformationFlowConstraints,
    current_round: int = 1,
) -> List[Clue]:
    """Assign reveal rounds, pushing clues later while a round is over its budget.

    Returns the clues ordered by their assigned round. Revealed clues pass through.
    """
    expected_length = max(1, expected_length)
    pending = [clue for clue in clues if clue.is_pending]
    settled = [clue for clue in clues if not clue.is_pending]
    planned = sorted(
        pending,
        key=lambda clue: (optimal_reveal_round(clue, expected_length), -clue.information_value, clue.id),
    )

    information: Dict[int, int] = defaultdict(int)
    high_value: Dict[int, int] = defaultdict(int)
    scheduled = []
    for clue in planned:
        reveal_round = max(current_round, optimal_reveal_round(clue, expected_length))
        while reveal_round < expected_length and _over_budget(clue, reveal_round, information, high_value, constraints):
            reveal_round += 1
        information[reveal_round] += clue.information_value
        if clue.information_value > HIGH_VALUE:
            high_value[reveal_round] += 1
        scheduled.append((reveal_round, clue.with_changes(reveal_conditions=timing_conditions(clue, reveal_round))))

    logger.debug("Planned %d reveals over %d rounds", len(scheduled), expected_length)
    return settled + [clue for _, clue in sorted(scheduled, key=lambda item: item[0])]


def _over_budget(
    clue: Clue,
    reveal_round: int,
    information: Dict[int, int],
    high_value: Dict[int, int],
    constraints: InformationFlowConstraints,
) -> bool:
    if information[reveal_round] + clue.information_value > constraints.max_information_per_round:
        return True
    return clue.information_value > HIGH_VALUE and high_value[reveal_round] >= constraints.max_high_value_clues


def calculate_clue_relevance(clue: Clue, state: GameState) -> float:
    """How useful the clue is right now, in [0, 1]."""
    multipliers = PHASE_MULTIPLIERS.get(state.phase, {})
    multiplier = multipliers.get(clue.clue_type, multipliers.get(clue.family, 1.0))
    relevance = clue.information_value / 10 * multiplier
    if clue.id in state.revealed_information:
        relevance *= 0.3
    relevance *= max(0.3, 1 - state.elimination_ratio * 0.4)
    relevance *= _voting_factor(clue, state)
    return clamp(relevance, 0.0, 1.0)


def _voting_factor(clue: Clue, state: GameState) -> float:
    if not state.voting_history or not clue.target_players:
        return 1.0
    voted_on = {vote.target_id for vote in state.voting_history}
    return 1.3 if voted_on & set(clue.target_players) else 0.9
