"""Clue lifecycle facade used by the game engine."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Any, Dict, List, Optional

from clueflow.config import Settings, load_settings
from clueflow.domain.enums import ClueType, Difficulty, GameEventKind, GamePhase, RevealTrigger
from clueflow.domain.game import GameEvent, GameState, Player, RoleDefinition
from clueflow.domain.models import Clue, Reveal, round_condition
from clueflow.domain.rules import ensure_found
from clueflow.generation.clues import ClueFactory
from clueflow.generation.content import ContentGenerator, TemplateGenerator
from clueflow.generation.specialized import SpecializedClueFactory
from clueflow.investigation.simulator import InvestigationOption, InvestigationResult, InvestigationSimulator
from clueflow.persistence.repository import ClueRepository
from clueflow.persistence.store import KeyValueStore, MemoryStore
from clueflow.revelation.conditions import ConditionEvaluator
from clueflow.revelation.manager import RevelationManager
from clueflow.revelation.narrative import RevealNarrator
from clueflow.util.ids import utc_now
from clueflow.util.rng import Rng
from clueflow.validation.balance import max_advantage, player_performance
from clueflow.validation.validator import (
    ClueAdjustment,
    ClueSetAnalysis,
    ClueValidator,
    apply_adjustments,
    information_distribution,
)

logger = logging.getLogger(__name__)


@dataclass
class GameClueConfig:
    state: GameState
    roles: List[RoleDefinition]
    difficulty: str = "medium"
    expected_game_length: int = 8
    direct_evidence_count: int = 2
    narrative_count: int = 2
    red_herring_count: int = 2
    validation_overrides: Dict[str, Any] = field(default_factory=dict)

    @property
    def game_id(self) -> str:
        return self.state.id


@dataclass
class ClueSetMetadata:
    game_id: str
    total_clues: int
    total_information_value: int
    average_information_value: float
    balance_score: float
    narrative_coherence: float
    generated_at: datetime


@dataclass
class GameClueSet:
    clues: List[Clue]
    validation: ClueSetAnalysis
    metadata: ClueSetMetadata


@dataclass
class PlayerPerformanceMetrics:
    average_deduction_accuracy: float = 0.5
    stalemate_duration: int = 0
    investigation_effectiveness: float = 0.5
    voting_accuracy: float = 0.5
    communication_engagement: float = 0.5


@dataclass
class ClueSystemAnalysis:
    game_id: str
    total_clues: int
    revealed_clues: int
    revelation_rate: float
    average_information_value: float
    narrative_impact: float
    player_satisfaction: float
    information_distribution: Dict[str, float] = field(default_factory=dict)
    progression: Dict[str, int] = field(default_factory=dict)
    red_herring_effectiveness: str = "minimal"
    recommendations: List[str] = field(default_factory=list)


def create_standard_clue_config(
    state: GameState,
    roles: List[RoleDefinition],
    difficulty: str = "medium",
    red_herring_ratio: float = 0.25,
    narrative_focus: bool = False,
    settings: Optional[Settings] = None,
) -> GameClueConfig:
    """Config sized to the table, tuned by a difficulty preset."""
    settings = settings or load_settings()
    preset = settings.preset(difficulty)
    players = len(state.players)
    return GameClueConfig(
        state=state,
        roles=roles,
        difficulty=difficulty,
        expected_game_length=preset.expected_game_length,
        direct_evidence_count=max(2, players // 3),
        narrative_count=4 if narrative_focus else 2,
        red_herring_count=int(players * red_herring_ratio),
        validation_overrides=dict(preset.validation),
    )


class ClueSystem:
    def __init__(
        self,
        repository: ClueRepository,
        factory: ClueFactory,
        specialized: SpecializedClueFactory,
        validator: ClueValidator,
        revelation: RevelationManager,
        investigations: InvestigationSimulator,
        rng: Rng,
        settings: Settings,
    ) -> None:
        self.repository = repository
        self.factory = factory
        self.specialized = specialized
        self.validator = validator
        self.revelation = revelation
        self.investigations = investigations
        self.rng = rng
        self.settings = settings

    # Generation

    def generate_game_clues(self, config: GameClueConfig) -> GameClueSet:
        state = config.state
        overrides = config.validation_overrides
        self.revelation.observe(state)

        clues: List[Clue] = []
        clues += self.factory.generate_clues(state.scenario, config.roles, state)
        clues += self.specialized.create_direct_evidence_clues(state, config.direct_evidence_count)
        clues += self.specialized.create_behavioral_clues(state)
        clues += self.specialized.create_social_clues(state)
        clues += self.specialized.create_narrative_clues(state, config.narrative_count)
        clues += self.specialized.create_red_herrings(state, config.red_herring_count)
        clues = self.factory.connect_clues(clues)

        analysis = self.validator.validate_clue_set(clues, state.scenario, config.roles, state, overrides)
        clues = apply_adjustments(clues, analysis.adjustments)
        clues = self.validator.balance_clues_for_players(clues, state.players, state)
        clues = self.validator.enforce_balance(clues, overrides)
        clues = self.validator.optimize_information_flow(clues, config.expected_game_length, state.round, overrides)

        self.repository.register_game_clues(config.game_id, clues)
        for clue in clues:
            if clue.reveal_conditions:
                self.revelation.schedule_reveal(clue, config.game_id)

        validation = self.validator.validate_clue_set(clues, state.scenario, config.roles, state, overrides)
        metadata = ClueSetMetadata(
            game_id=config.game_id,
            total_clues=len(clues),
            total_information_value=validation.total_information_value,
            average_information_value=validation.quality.average_information_value,
            balance_score=round(
                max(
                    0.0,
                    1 - (max_advantage(validation.information_advantage) + max_advantage(validation.win_probability_shift)) / 2,
                ),
                2,
            ),
            narrative_coherence=validation.narrative_consistency,
            generated_at=utc_now(),
        )
        logger.info(
            "Generated %d clues for game %s (balance %.2f)",
            len(clues),
            config.game_id,
            metadata.balance_score,
        )
        return GameClueSet(clues=clues, validation=validation, metadata=metadata)

    # Events

    def process_game_event(self, event: GameEvent, state: GameState) -> List[Reveal]:
        if all(existing.id != event.id for existing in state.events):
            state = state.model_copy(update={"events": [*state.events, event]})
        self.revelation.observe(state)
        tuning = self.settings.revelation

        reveals = self.revelation.process_automatic_reveals(state)
        if event.kind is GameEventKind.ELIMINATION:
            for _ in range(tuning.max_event_reveals):
                reveal = self.revelation.reveal_narrative(state, RevealTrigger.ATMOSPHERIC)
                if reveal is not None:
                    reveals.append(reveal)
        elif event.kind is GameEventKind.PHASE_CHANGE and state.phase is GamePhase.DAY_DISCUSSION:
            if self.rng.chance(tuning.phase_change_probability):
                reveal = self.revelation.reveal_narrative(state, RevealTrigger.ATMOSPHERIC)
                if reveal is not None:
                    reveals.append(reveal)
        logger.debug("Event %s in game %s produced %d reveals", event.kind, state.id, len(reveals))
        return reveals

    # Investigations

    def conduct_player_investigation(self, investigator_id: str, target_id: str, state: GameState) -> InvestigationResult:
        investigator = ensure_found(state.player(investigator_id), "player", actor_id=investigator_id, game_id=state.id)
        target = ensure_found(state.player(target_id), "player", target_id=target_id, game_id=state.id)
        self.revelation.observe(state)
        result = self.investigations.conduct_investigation(investigator, target, state)
        self.repository.invalidate_profile(investigator_id)
        return result

    def get_player_investigation_options(self, player_id: str, state: GameState) -> List[InvestigationOption]:
        player = ensure_found(state.player(player_id), "player", actor_id=player_id, game_id=state.id)
        return self.investigations.get_available_investigations(player, state)

    def reveal_investigation(self, result: InvestigationResult, state: GameState) -> Reveal:
        return self.investigations.process_investigation_result(result, state)

    # Adaptation

    def update_clue_relevance(self, game_id: str, state: GameState) -> List[Clue]:
        """Re-tune pending clues to the current snapshot and refresh their schedule entries.

        The damped set is validated again; once its summed difficulty climbs past
        `rebalance_difficulty_increase` it is pulled back within the advantage
        tolerance, and any clue dropped on the way leaves the schedule.
        """
        clues = self.repository.load_game_clues(game_id)
        updated = self.factory.update_clue_relevance(clues, state)
        analysis = self.validator.validate_clue_set(updated, state.scenario, [], state)
        dropped: List[str] = []
        if analysis.difficulty_increase > self.settings.revelation.rebalance_difficulty_increase:
            balanced = self.validator.enforce_balance(updated)
            kept = {clue.id for clue in balanced}
            dropped = [clue.id for clue in updated if clue.id not in kept]
            logger.info(
                "Rebalanced game %s after relevance update (difficulty %.1f, %d dropped)",
                game_id,
                analysis.difficulty_increase,
                len(dropped),
            )
            updated = balanced
        with self.revelation.schedule.lock(game_id):
            queued = {entry.clue_id for entry in self.revelation.schedule.entries(game_id)}
            for clue_id in dropped:
                self.revelation.unschedule(clue_id, game_id)
            for clue in updated:
                if not clue.is_pending:
                    continue
                self.repository.save_clue(clue)
                if clue.id in queued:
                    self.revelation.schedule_reveal(clue, game_id)
        return updated

    def generate_adaptive_clues(self, state: GameState, metrics: PlayerPerformanceMetrics) -> List[Clue]:
        clues: List[Clue] = []
        if metrics.average_deduction_accuracy < 0.4:
            clues += self.specialized.create_direct_evidence_clues(state, 2)
        elif metrics.average_deduction_accuracy > 0.8:
            clues += self.specialized.create_red_herrings(state, 1)
        if metrics.stalemate_duration > 5:
            for clue in self.specialized.create_narrative_clues(state, 1):
                clues.append(
                    clue.with_changes(
                        information_value=min(8, clue.information_value + 2),
                        difficulty=Difficulty.EASY,
                        reveal_conditions=[round_condition(state.round)],
                    )
                )
        if not clues:
            return []
        self.repository.register_game_clues(state.id, clues)
        for clue in clues:
            self.revelation.schedule_reveal(clue, state.id)
        logger.info("Added %d adaptive clues to game %s", len(clues), state.id)
        return clues

    def apply_clue_adjustments(self, clues: List[Clue], adjustments: List[ClueAdjustment]) -> List[Clue]:
        return apply_adjustments(clues, adjustments)

    # Profiles

    def get_player_profile(self, player: Player) -> Dict[str, Any]:
        cached = self.repository.load_profile(player.id)
        if cached is not None:
            return cached
        profile = {
            "player_id": player.id,
            "performance": player_performance(player),
            "actions": len(player.action_history),
            "messages": len(player.communications),
            "average_suspicion": player.average_suspicion,
        }
        self.repository.save_profile(player.id, profile)
        return profile

    # End of game

    def end_game(self, game_id: str) -> int:
        return self.revelation.expire_game(game_id)

    def analyze_performance(self, game_id: str) -> ClueSystemAnalysis:
        clues = self.repository.load_game_clues(game_id)
        reveals = self.revelation.reveals_for(game_id)
        revealed = [clue for clue in clues if clue.is_revealed]
        total = len(clues)
        rate = len(revealed) / total if total else 0.0
        average_value = sum(c.information_value for c in revealed) / len(revealed) if revealed else 0.0
        narrative_impact = sum(c.narrative_weight for c in revealed) / len(revealed) if revealed else 0.0
        herrings = [clue for clue in clues if clue.family is ClueType.RED_HERRING]
        hidden_herrings = [clue for clue in herrings if not clue.is_revealed]

        recommendations = []
        if rate < 0.3:
            recommendations.append("Few clues reached players; loosen reveal conditions")
        elif rate > 0.8:
            recommendations.append("Most clues surfaced; add harder clues")
        if average_value > 7:
            recommendations.append("Revealed clues may be too decisive")
        if not herrings:
            recommendations.append("Include red herrings to sustain uncertainty")

        return ClueSystemAnalysis(
            game_id=game_id,
            total_clues=total,
            revealed_clues=len(revealed),
            revelation_rate=rate,
            average_information_value=average_value,
            narrative_impact=narrative_impact,
            player_satisfaction=min(1.0, rate * 0.5 + average_value / 10 * 0.3 + narrative_impact / 10 * 0.2),
            information_distribution=information_distribution(clues, []),
            progression=dict(Counter(str(reveal.method) for reveal in reveals)),
            red_herring_effectiveness="effective" if hidden_herrings else "minimal",
            recommendations=recommendations,
        )


def build_clue_system(
    store: Optional[KeyValueStore] = None,
    generator: Optional[ContentGenerator] = None,
    rng: Optional[Rng] = None,
    settings: Optional[Settings] = None,
) -> ClueSystem:
    """Wire a ClueSystem; every collaborator can be swapped."""
    settings = settings or load_settings()
    rng = rng or Rng(0)
    repository = ClueRepository(store or MemoryStore(), settings.storage)
    generator = generator or TemplateGenerator(rng.fork("content"))
    factory = ClueFactory(generator, rng.fork("clues"))
    specialized = SpecializedClueFactory(generator, rng.fork("specialized"))
    revelation = RevelationManager(
        repository,
        ConditionEvaluator(rng.fork("conditions"), settings.revelation),
        RevealNarrator(generator, rng.fork("narrative")),
        rng.fork("revelation"),
        settings.revelation,
        narrative_source=factory.create_narrative_clues,
    )
    return ClueSystem(
        repository=repository,
        factory=factory,
        specialized=specialized,
        validator=ClueValidator(settings.validation),
        revelation=revelation,
        investigations=InvestigationSimulator(repository, specialized, revelation),
        rng=rng.fork("system"),
        settings=settings,
    )
