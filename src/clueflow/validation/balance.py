"""Faction balance: per-clue impact, set-level advantage, and player-skill scaling."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import math
from typing import Dict, List, Optional

from clueflow.config import BalanceTolerances
from clueflow.domain.enums import Alignment, ClueType, Difficulty
from clueflow.domain.game import GameState, Player
from clueflow.domain.models import Clue, clamp

logger = logging.getLogger(__name__)

FACTIONS = (Alignment.TOWN, Alignment.MAFIA)

DIFFICULTY_INCREASE = {
    Difficulty.TRIVIAL: -1,
    Difficulty.EASY: 0,
    Difficulty.MEDIUM: 1,
    Difficulty.HARD: 2,
    Difficulty.EXPERT: 3,
}


@dataclass
class BalanceImpact:
    information_advantage: Dict[str, float] = field(default_factory=dict)
    win_probability_shift: Dict[str, float] = field(default_factory=dict)
    difficulty_increase: float = 0.0
    strategic_complexity: float = 0.0
    acceptable: bool = True


def information_advantage(clue: Clue) -> Dict[str, float]:
    iv = clue.information_value
    advantage = {str(faction): 0.0 for faction in FACTIONS}
    if clue.family in (ClueType.ROLE_HINT, ClueType.ALIGNMENT_HINT):
        advantage[Alignment.TOWN] = iv / 20
        advantage[Alignment.MAFIA] = -iv / 40
    elif clue.family is ClueType.RED_HERRING:
        advantage[Alignment.TOWN] = -clue.misdirection_level / 20
        advantage[Alignment.MAFIA] = clue.misdirection_level / 30
    return advantage


def advantage_ceiling(limit: float) -> int:
    """Highest hint value or herring misdirection whose advantage stays within the limit."""
    return math.floor(limit * 20 + 1e-9)


def clue_balance_impact(clue: Clue, player_count: int, tolerances: BalanceTolerances) -> BalanceImpact:
    advantage = information_advantage(clue)
    ratio = clue.information_value / (max(1, player_count) * 5)
    shift = {str(Alignment.TOWN): ratio * 0.1, str(Alignment.MAFIA): -ratio * 0.05}
    low, high = tolerances.win_probability_bounds
    impact = BalanceImpact(
        information_advantage=advantage,
        win_probability_shift=shift,
        difficulty_increase=DIFFICULTY_INCREASE[clue.difficulty],
        strategic_complexity=min(10, clue.information_value + clue.narrative_weight),
    )
    impact.acceptable = (
        all(abs(value) <= tolerances.max_information_advantage for value in advantage.values())
        and all(low <= value <= high for value in shift.values())
        and impact.difficulty_increase <= tolerances.max_difficulty_increase
        and impact.strategic_complexity <= tolerances.max_strategic_complexity
    )
    return impact


def collective_advantage(clues: List[Clue]) -> Dict[str, float]:
    """Per-faction advantage of a set, averaged over its clues."""
    totals = {str(faction): 0.0 for faction in FACTIONS}
    if not clues:
        return totals
    for clue in clues:
        for faction, value in information_advantage(clue).items():
            totals[faction] += value
    return {faction: value / len(clues) for faction, value in totals.items()}


def collective_win_shift(clues: List[Clue], player_count: int) -> Dict[str, float]:
    shift = {str(faction): 0.0 for faction in FACTIONS}
    if not clues:
        return shift
    for clue in clues:
        ratio = clue.information_value / (max(1, player_count) * 5)
        shift[Alignment.TOWN] += ratio * 0.1
        shift[Alignment.MAFIA] -= ratio * 0.05
    return {faction: value / len(clues) for faction, value in shift.items()}


def max_advantage(advantage: Dict[str, float]) -> float:
    return max((abs(value) for value in advantage.values()), default=0.0)


def enforce_balance(clues: List[Clue], tolerances: BalanceTolerances) -> List[Clue]:
    """Weaken, then drop, the strongest contributor until the set is within tolerance.

    Revealed clues are never touched; if only they remain the set is left as is.
    """
    clues = list(clues)
    limit = tolerances.max_information_advantage
    while clues:
        advantage = collective_advantage(clues)
        if max_advantage(advantage) <= limit:
            break
        faction = max(advantage, key=lambda key: abs(advantage[key]))
        sign = 1 if advantage[faction] > 0 else -1
        candidates = [
            clue
            for clue in clues
            if clue.is_pending and sign * information_advantage(clue)[faction] > 0
        ]
        if not candidates:
            logger.warning("Clue set stays out of balance: only revealed clues favour %s", faction)
            break
        strongest = max(candidates, key=lambda clue: (sign * information_advantage(clue)[faction], clue.id))
        index = clues.index(strongest)
        if strongest.family is ClueType.RED_HERRING and strongest.misdirection_level > 0:
            clues[index] = strongest.with_changes(misdirection_level=strongest.misdirection_level - 1)
        elif strongest.family is not ClueType.RED_HERRING and strongest.information_value > 1:
            clues[index] = strongest.with_changes(information_value=strongest.information_value - 1)
        else:
            logger.warning("Removing clue %s to restore faction balance", strongest.id)
            del clues[index]
    return clues


def player_performance(player: Player) -> float:
    return min(1.0, (len(player.action_history) * 0.3 + len(player.communications) * 0.7) / 5)


def average_performance(players: List[Player]) -> float:
    active = [player for player in players if player.action_history]
    if not active:
        return 0.5
    return sum(player_performance(player) for player in active) / len(active)


def difficulty_multiplier(performance: float) -> float:
    if performance > 0.7:
        return 1.2
    if performance < 0.3:
        return 0.8
    return 1.0


def balance_clues_for_players(
    clues: List[Clue],
    players: List[Player],
    state: Optional[GameState] = None,
) -> List[Clue]:
    """Scale pending clues to the table's skill; stronger tables get subtler red herrings."""
    multiplier = difficulty_multiplier(average_performance(players))
    if multiplier == 1.0:
        return list(clues)
    logger.debug(
        "Rebalancing %d clues with multiplier %.1f (round %s)",
        len(clues),
        multiplier,
        state.round if state else "-",
    )
    balanced = []
    for clue in clues:
        if not clue.is_pending:
            balanced.append(clue)
            continue
        changes = {"information_value": int(clamp(round(clue.information_value * multiplier), 1, 10))}
        if multiplier > 1.1:
            changes["difficulty"] = clue.difficulty.shift(1)
        elif multiplier < 0.9:
            changes["difficulty"] = clue.difficulty.shift(-1)
        if clue.family is ClueType.RED_HERRING:
            changes["misdirection_level"] = round(clue.misdirection_level * (2 - multiplier))
        balanced.append(clue.with_changes(**changes))
    return balanced
