"""Reveal scheduling, automatic passes, and reveal finalisation."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from clueflow.config import RevelationTuning
from clueflow.domain.enums import ClueType, RevealTrigger, StrategicValue
from clueflow.domain.errors import AlreadyRevealedError, ClueExpiredError, PreconditionError
from clueflow.domain.game import GameState
from clueflow.domain.models import (
    Clue,
    Reveal,
    RevealCondition,
    ScheduledReveal,
    round_condition,
)
from clueflow.domain.rules import ensure_found
from clueflow.persistence.repository import ClueRepository
from clueflow.revelation.conditions import ConditionEvaluator
from clueflow.revelation.graph import ClueGraph
from clueflow.revelation.narrative import RevealNarrator, reveal_audience, reveal_method
from clueflow.revelation.schedule import RevealSchedule
from clueflow.util.ids import utc_now
from clueflow.util.locks import LockRegistry
from clueflow.util.rng import Rng

logger = logging.getLogger(__name__)

NarrativeSource = Callable[[GameState, int], List[Clue]]


def reveal_priority(clue: Clue, conditions: List[RevealCondition]) -> int:
    priority = clue.information_value
    if clue.information_value > 7:
        priority += 3
    if any(condition.is_restrictive for condition in conditions):
        priority += 2
    if clue.family is ClueType.RED_HERRING:
        priority -= 2
    return max(1, priority)


def game_tension(state: GameState, expected_rounds: int = 8) -> float:
    progress = min(1.0, state.round / max(1, expected_rounds))
    return min(1.0, state.elimination_ratio * 0.6 + progress * 0.4)


class RevelationManager:
    def __init__(
        self,
        repository: ClueRepository,
        evaluator: ConditionEvaluator,
        narrator: RevealNarrator,
        rng: Rng,
        tuning: Optional[RevelationTuning] = None,
        narrative_source: Optional[NarrativeSource] = None,
    ) -> None:
        self.repository = repository
        self.evaluator = evaluator
        self.narrator = narrator
        self.rng = rng
        self.tuning = tuning or RevelationTuning()
        self.narrative_source = narrative_source
        self.schedule = RevealSchedule(repository)
        self._clue_locks = LockRegistry()

    # Snapshots

    def observe(self, state: GameState) -> None:
        """Record the latest snapshot of a game."""
        self.repository.save_game_state(state)

    def game_state(self, game_id: str) -> GameState:
        return ensure_found(self.repository.load_game_state(game_id), "game", game_id=game_id)

    def game_tension(self, state: GameState) -> float:
        return game_tension(state, self.tuning.expected_rounds)

    # Conditions and scheduling

    def check_reveal_conditions(
        self,
        clue: Clue,
        state: GameState,
        conditions: Optional[List[RevealCondition]] = None,
    ) -> bool:
        """Any condition holding and passing its own roll; no conditions means always."""
        if not clue.is_pending:
            return False
        conditions = clue.reveal_conditions if conditions is None else conditions
        if not conditions:
            return True
        return any(self.evaluator.passes(condition, state) for condition in conditions)

    def schedule_reveal(
        self,
        clue: Clue,
        game_id: str,
        conditions: Optional[List[RevealCondition]] = None,
        source_clue_id: Optional[str] = None,
    ) -> ScheduledReveal:
        conditions = list(clue.reveal_conditions if conditions is None else conditions)
        stored = self.repository.load_clue(clue.id)
        current = stored or clue
        if current.is_revealed:
            raise AlreadyRevealedError("Cannot schedule a revealed clue", clue_id=clue.id, game_id=game_id)
        if not current.is_pending:
            raise ClueExpiredError("Cannot schedule an expired clue", clue_id=clue.id, game_id=game_id)
        if stored is None or clue.id not in self.repository.game_clue_ids(game_id):
            self.repository.register_game_clues(game_id, [current])

        entry = ScheduledReveal(
            clue_id=clue.id,
            game_id=game_id,
            conditions=conditions,
            priority=reveal_priority(current, conditions),
            scheduled_at=utc_now(),
            source_clue_id=source_clue_id,
        )
        self.schedule.add(entry)
        logger.debug("Scheduled clue %s in game %s at priority %d", clue.id, game_id, entry.priority)
        return entry

    def unschedule(self, clue_id: str, game_id: str) -> bool:
        return self.schedule.remove(game_id, clue_id)

    # Passes

    def process_automatic_reveals(self, state: GameState) -> List[Reveal]:
        self.observe(state)
        reveals: List[Reveal] = []
        with self.schedule.lock(state.id):
            for entry in self.schedule.entries(state.id):
                clue = self.repository.load_clue(entry.clue_id)
                if clue is None or not clue.is_pending:
                    self.schedule.remove(state.id, entry.clue_id)
                    continue
                if not self.check_reveal_conditions(clue, state, entry.conditions):
                    continue
                try:
                    reveals.append(self._finalize(entry.clue_id, state, None, RevealTrigger.AUTOMATIC))
                except (AlreadyRevealedError, ClueExpiredError) as exc:
                    logger.warning("Lost reveal race for clue %s: %s", entry.clue_id, exc)
                    self.schedule.remove(state.id, entry.clue_id)

            if self.game_tension(state) > self.tuning.tension_threshold:
                for _ in range(self.tuning.max_atmospheric_per_pass):
                    if not self.rng.chance(self.tuning.atmospheric_probability):
                        continue
                    reveal = self.reveal_narrative(state, RevealTrigger.ATMOSPHERIC)
                    if reveal is not None:
                        reveals.append(reveal)
        if reveals:
            logger.info("Automatic pass revealed %d clues in game %s", len(reveals), state.id)
        return reveals

    def reveal_narrative(self, state: GameState, trigger: RevealTrigger) -> Optional[Reveal]:
        """Reveal one atmospheric clue right away, minting it when a source is available."""
        clue = self._narrative_clue(state)
        if clue is None:
            return None
        return self._finalize(clue.id, state, None, trigger)

    # Reveal

    def reveal_clue(
        self,
        clue_id: str,
        game_id: str,
        triggered_by: Optional[str] = None,
        state: Optional[GameState] = None,
    ) -> Reveal:
        """Reveal one clue.

        Without a triggering actor the clue's own conditions must hold. A second
        reveal of the same clue raises AlreadyRevealedError.
        """
        state = state or self.game_state(game_id)
        if state.id != game_id:
            raise PreconditionError("Snapshot belongs to another game", game_id=game_id, clue_id=clue_id)
        clue = ensure_found(self.repository.load_clue(clue_id), "clue", clue_id=clue_id, game_id=game_id)
        if clue.is_revealed:
            raise AlreadyRevealedError("Clue already revealed", clue_id=clue_id, game_id=game_id)
        if triggered_by is None and not self.check_reveal_conditions(clue, state):
            raise PreconditionError("Reveal conditions are not met", clue_id=clue_id, game_id=game_id)
        trigger = RevealTrigger.INVESTIGATION if triggered_by else RevealTrigger.AUTOMATIC
        return self._finalize(clue_id, state, triggered_by, trigger)

    def _finalize(
        self,
        clue_id: str,
        state: GameState,
        triggered_by: Optional[str],
        trigger: RevealTrigger,
    ) -> Reveal:
        game_id = state.id
        with self._clue_locks.hold(clue_id):
            clue = ensure_found(self.repository.load_clue(clue_id), "clue", clue_id=clue_id, game_id=game_id)
            if clue.is_revealed:
                raise AlreadyRevealedError("Clue already revealed", clue_id=clue_id, game_id=game_id)
            if not clue.is_pending:
                raise ClueExpiredError("Clue expired with its game", clue_id=clue_id, game_id=game_id)
            narrative_text = self.narrator.narrate(clue, trigger, state)
            impact = self.narrator.impact(clue, state)
            timestamp = utc_now()
            reveal = Reveal(
                clue_id=clue_id,
                game_id=game_id,
                audience=reveal_audience(triggered_by),
                revealed_by=triggered_by,
                method=reveal_method(clue, triggered_by),
                trigger=trigger,
                timestamp=timestamp,
                narrative_text=narrative_text,
                impact=impact,
            )
            self.repository.append_reveal(reveal)
            clue.mark_revealed(timestamp, triggered_by)
            self.repository.save_clue(clue)

        with self.schedule.lock(game_id):
            self.schedule.remove(game_id, clue_id)
            self._propagate_chain(clue, state)
            if impact.strategic_value is StrategicValue.GAME_CHANGING:
                self._schedule_follow_up(clue, state)
        logger.info("Revealed clue %s in game %s via %s", clue_id, game_id, reveal.method)
        return reveal

    def _propagate_chain(self, clue: Clue, state: GameState) -> List[str]:
        graph = ClueGraph.from_clues(self.repository.load_game_clues(state.id))
        targets = graph.chain_targets(clue.id, self.tuning.chain_depth, self.tuning.is_chain_pair)
        condition = round_condition(state.round, probability=self.tuning.chain_probability)
        for target_id in targets:
            self.schedule_reveal(graph.clues[target_id], state.id, [condition], source_clue_id=clue.id)
        return targets

    def _schedule_follow_up(self, clue: Clue, state: GameState) -> Optional[ScheduledReveal]:
        follow_up = self._narrative_clue(state)
        if follow_up is None:
            return None
        condition = round_condition(state.round + 1, probability=self.tuning.follow_up_probability)
        return self.schedule_reveal(follow_up, state.id, [condition], source_clue_id=clue.id)

    def _narrative_clue(self, state: GameState) -> Optional[Clue]:
        if self.narrative_source is not None:
            minted = self.narrative_source(state, 1)
            if minted:
                self.repository.register_game_clues(state.id, minted)
                return minted[0]
        queued = {entry.clue_id for entry in self.schedule.entries(state.id)}
        for clue in self.repository.load_game_clues(state.id):
            if clue.is_pending and clue.family is ClueType.ENVIRONMENTAL and clue.id not in queued:
                return clue
        return None

    # Lifecycle

    def expire_game(self, game_id: str) -> int:
        """Expire every unrevealed clue of a game and drop its schedule."""
        expired = 0
        with self.schedule.lock(game_id):
            for clue_id in self.repository.game_clue_ids(game_id):
                with self._clue_locks.hold(clue_id):
                    clue = self.repository.load_clue(clue_id)
                    if clue is None or not clue.is_pending:
                        continue
                    clue.expire()
                    self.repository.save_clue(clue)
                    expired += 1
            self.schedule.clear(game_id)
        logger.info("Expired %d clues for game %s", expired, game_id)
        return expired

    def reveals_for(self, game_id: str) -> List[Reveal]:
        return self.repository.load_reveals(game_id)
