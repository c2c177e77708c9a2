"""Base clue generation from scenario briefs."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from clueflow.domain.enums import (
    BASE_TYPES,
    ClueType,
    ConditionType,
    Difficulty,
    Reliability,
    Verifiability,
)
from clueflow.domain.game import GameState, RoleDefinition, Scenario
from clueflow.domain.models import (
    Clue,
    ClueGameContext,
    NarrativeClue,
    RevealCondition,
    round_condition,
)
from clueflow.generation.content import (
    ClueDraft,
    ContentGenerator,
    Generated,
    GenerationBrief,
    fallback_content,
    fallback_draft,
    parse_clue_draft,
    pick_title,
)
from clueflow.util.rng import Rng
from clueflow.validation.flow import calculate_clue_relevance

logger = logging.getLogger(__name__)

MAX_CONNECTIONS = 3

# Past this a single herring breaks the default per-clue advantage tolerance.
MAX_HERRING_MISDIRECTION = 6


def clue_context(state: Optional[GameState], scenario: Optional[Scenario] = None) -> ClueGameContext:
    if state is None:
        if scenario is None:
            return ClueGameContext()
        return ClueGameContext(scenario=scenario.name, theme=scenario.theme)
    return ClueGameContext(
        scenario=state.scenario.name,
        theme=state.scenario.theme,
        player_count=state.total_players,
        round=state.round,
        phase=state.phase,
        alive_player_count=len(state.alive_players),
    )


def reliability_tier(score: float) -> Reliability:
    if score > 0.7:
        return Reliability.RELIABLE
    if score > 0.4:
        return Reliability.UNRELIABLE
    return Reliability.MISLEADING


def _difficulty_for(score: float) -> Difficulty:
    if score > 0.9:
        return Difficulty.EASY
    if score > 0.7:
        return Difficulty.MEDIUM
    if score > 0.5:
        return Difficulty.HARD
    return Difficulty.EXPERT


def _verifiability_for(draft: ClueDraft) -> Verifiability:
    if draft.type == "evidence":
        return Verifiability.EASILY_VERIFIED
    if draft.type == "observation":
        return Verifiability.HARD_TO_VERIFY
    return Verifiability.UNVERIFIABLE


def default_reveal_conditions() -> List[RevealCondition]:
    return [round_condition(2, probability=0.7)]


class ClueFactory:
    """Builds one clue per base type, asking the generator and falling back to templates."""

    def __init__(self, generator: ContentGenerator, rng: Rng) -> None:
        self.generator = generator
        self.rng = rng

    def generate_clues(
        self,
        scenario: Scenario,
        roles: List[RoleDefinition],
        state: Optional[GameState] = None,
    ) -> List[Clue]:
        context = clue_context(state, scenario)
        known_players = {player.id for player in state.players} if state else set()
        clues = []
        for clue_type in BASE_TYPES:
            draft = self._draft_for(scenario, roles, clue_type)
            clues.append(self._clue_from_draft(draft, clue_type, context, known_players))
        logger.debug("Generated %d base clues for %s", len(clues), scenario.name)
        return self.connect_clues(clues)

    def create_narrative_clues(self, state: GameState, count: int = 1) -> List[NarrativeClue]:
        clues = []
        for _ in range(count):
            brief = GenerationBrief(
                request="atmospheric_clue",
                theme=state.scenario.theme,
                setting=state.scenario.setting,
                scenario=state.scenario.name,
                clue_type=ClueType.NARRATIVE,
                extras={
                    "round": state.round,
                    "phase": str(state.phase),
                    "eliminated": len(state.eliminated_players),
                    "recent_events": [event.description for event in state.events[-3:]],
                },
            )
            result = self.generator.generate(brief)
            if isinstance(result, Generated):
                draft = parse_clue_draft(result.text)
                content = draft.content
            else:
                logger.warning("Narrative generation failed (%s); using fallback", result.reason)
                content = fallback_content(ClueType.NARRATIVE, state.scenario.setting)
            clues.append(
                NarrativeClue(
                    title=pick_title(ClueType.NARRATIVE, self.rng),
                    content=content,
                    clue_type=ClueType.NARRATIVE,
                    reliability=Reliability.RELIABLE,
                    verifiability=Verifiability.UNVERIFIABLE,
                    difficulty=Difficulty.EASY,
                    information_value=3,
                    narrative_weight=5,
                    tags=["narrative", "atmosphere"],
                    context=clue_context(state),
                    setting=state.scenario.setting,
                    atmosphere="ominous" if "dark" in state.scenario.theme else "tense and mysterious",
                    foreshadowing=[f"The truth about {state.scenario.name} draws closer"],
                )
            )
        return clues

    def connect_clues(self, clues: List[Clue]) -> List[Clue]:
        """Link each clue to at most three others sharing a tag, a type, or a similar value."""
        for clue in clues:
            related = [other.id for other in clues if other.id != clue.id and _should_connect(clue, other)]
            clue.related_clues = _merge_ids(clue.related_clues, related[:MAX_CONNECTIONS])
        return clues

    def update_clue_relevance(self, clues: Iterable[Clue], state: GameState) -> List[Clue]:
        """Damp pending clues to their current relevance and pull round gates toward the present."""
        updated = []
        for clue in clues:
            if not clue.is_pending:
                updated.append(clue)
                continue
            value = min(clue.information_value, max(1, round(calculate_clue_relevance(clue, state) * 10)))
            conditions = [
                round_condition(max(1, state.round - 1), condition.probability)
                if condition.type is ConditionType.ROUND_NUMBER and state.round > 1
                else condition
                for condition in clue.reveal_conditions
            ]
            updated.append(clue.with_changes(information_value=value, reveal_conditions=conditions))
        return updated

    def _draft_for(self, scenario: Scenario, roles: List[RoleDefinition], clue_type: ClueType) -> ClueDraft:
        brief = GenerationBrief(
            request="clue",
            theme=scenario.theme,
            setting=scenario.setting,
            scenario=scenario.name,
            clue_type=clue_type,
            extras={
                "roles": [{"name": role.name, "alignment": str(role.alignment), "type": str(role.type)} for role in roles],
                "role": roles[0].name if roles else "villager",
                "lore": scenario.lore,
                "custom_rules": list(scenario.custom_rules),
            },
        )
        result = self.generator.generate(brief)
        if isinstance(result, Generated):
            return parse_clue_draft(result.text)
        logger.warning("Clue generation failed for %s (%s); using fallback", clue_type, result.reason)
        return fallback_draft(clue_type, scenario.setting)

    def _clue_from_draft(
        self,
        draft: ClueDraft,
        clue_type: ClueType,
        context: ClueGameContext,
        known_players: set[str],
    ) -> Clue:
        score = draft.reliability
        if clue_type is ClueType.RED_HERRING:
            # A convincing herring misleads more and teaches little.
            information_value = max(1, round((1 - score) * 5))
            misdirection = min(MAX_HERRING_MISDIRECTION, round(score * 10))
            reliability = Reliability.MISLEADING
        else:
            information_value = round(score * 10)
            misdirection = 0
            reliability = reliability_tier(score)
        return Clue(
            title=pick_title(clue_type, self.rng),
            content=draft.content,
            clue_type=clue_type,
            reliability=reliability,
            verifiability=_verifiability_for(draft),
            difficulty=_difficulty_for(score),
            information_value=information_value,
            misdirection_level=misdirection,
            narrative_weight=len(draft.consequences) * 2,
            target_players=[entity for entity in draft.related_entities if entity in known_players],
            tags=[str(clue_type), *draft.related_entities],
            reveal_conditions=default_reveal_conditions(),
            context=context,
        )


def _should_connect(first: Clue, second: Clue) -> bool:
    return (
        bool(set(first.tags) & set(second.tags))
        or first.clue_type == second.clue_type
        or abs(first.information_value - second.information_value) <= 2
    )


def _merge_ids(existing: List[str], extra: List[str]) -> List[str]:
    merged = list(existing)
    for clue_id in extra:
        if clue_id not in merged:
            merged.append(clue_id)
    return merged
