"""Reveal prose and gameplay impact."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from clueflow.domain.enums import (
    ClueType,
    ConditionType,
    Reliability,
    RevealMethod,
    RevealTrigger,
    StrategicValue,
)
from clueflow.domain.game import GameState
from clueflow.domain.models import Audience, Clue, Impact, RedHerringClue
from clueflow.generation.content import ContentGenerator, Generated, GenerationBrief, MAX_CONTENT_LENGTH
from clueflow.util.grammar import clean_text
from clueflow.util.rng import Rng

logger = logging.getLogger(__name__)

TEMPLATES = {
    RevealTrigger.INVESTIGATION: (
        "Through careful investigation, you discover: {content}",
        "Your investigation reveals important information: {content}",
        "Diligent inquiry brings to light: {content}",
    ),
    RevealTrigger.AUTOMATIC: (
        "As events unfold, it becomes clear that: {content}",
        "The situation reveals: {content}",
        "Circumstances bring to light: {content}",
    ),
    RevealTrigger.ATMOSPHERIC: (
        "The atmosphere grows tense as you realize: {content}",
        "A chill runs through the group as someone notices: {content}",
        "The air becomes thick with suspicion when: {content}",
    ),
}

ATMOSPHERE_DESCRIPTORS = ("tense", "mysterious", "suspicious", "ominous", "uncertain")

RELIABILITY_SCALE = {
    Reliability.RELIABLE: 1.0,
    Reliability.UNRELIABLE: 0.7,
    Reliability.MISLEADING: -0.5,
}


def suspicion_delta(clue: Clue) -> float:
    if clue.family in (ClueType.ROLE_HINT, ClueType.ACTION_EVIDENCE):
        delta = clue.information_value * 0.1
    elif clue.family is ClueType.BEHAVIORAL:
        delta = clue.information_value * 0.08
    elif clue.family is ClueType.RED_HERRING:
        delta = clue.misdirection_level * 0.12
    else:
        delta = clue.information_value * 0.05
    return round(delta * RELIABILITY_SCALE[clue.reliability], 2)


def strategic_value(clue: Clue, state: GameState) -> StrategicValue:
    iv = clue.information_value
    if iv >= 9 and len(state.alive_players) <= 4:
        return StrategicValue.GAME_CHANGING
    if iv >= 7 or (clue.family is ClueType.RED_HERRING and clue.misdirection_level >= 8):
        return StrategicValue.SIGNIFICANT
    if iv >= 5:
        return StrategicValue.MODERATE
    if iv >= 3:
        return StrategicValue.MINOR
    return StrategicValue.NEGLIGIBLE


def reveal_method(clue: Clue, triggered_by: Optional[str]) -> RevealMethod:
    if triggered_by:
        return RevealMethod.INVESTIGATION
    types = {condition.type for condition in clue.reveal_conditions}
    if ConditionType.PLAYER_ELIMINATED in types:
        return RevealMethod.DEATH
    if ConditionType.VOTE_PATTERN in types:
        return RevealMethod.VOTE_PATTERN
    if ConditionType.ABILITY_USED in types:
        return RevealMethod.SPECIAL_ABILITY
    return RevealMethod.AUTOMATIC


def reveal_audience(triggered_by: Optional[str]) -> Audience:
    if triggered_by:
        return Audience.player(triggered_by)
    return Audience.everyone()


class RevealNarrator:
    def __init__(self, generator: ContentGenerator, rng: Rng) -> None:
        self.generator = generator
        self.rng = rng

    def narrate(self, clue: Clue, trigger: RevealTrigger, state: GameState) -> str:
        brief = GenerationBrief(
            request="reveal_narrative",
            theme=state.scenario.theme,
            setting=state.scenario.setting,
            scenario=state.scenario.name,
            targets=list(clue.target_players),
            difficulty=clue.difficulty,
            extras={"content": clue.content, "trigger": str(trigger), "round": state.round},
        )
        result = self.generator.generate(brief)
        if isinstance(result, Generated) and result.text.strip():
            return clean_text(result.text, MAX_CONTENT_LENGTH)
        if not isinstance(result, Generated):
            logger.debug("Reveal narration unavailable (%s); using template", result.reason)
        return self.rng.choice(TEMPLATES[trigger]).format(content=clue.content)

    def impact(self, clue: Clue, state: GameState) -> Impact:
        delta = suspicion_delta(clue)
        targets = list(clue.target_players)
        if isinstance(clue, RedHerringClue) and clue.misdirection_target not in targets:
            targets.append(clue.misdirection_target)
        changes: Dict[str, float] = {player_id: delta for player_id in targets if delta != 0}

        progressions = [f'"{clue.title}" has been revealed']
        if clue.family is ClueType.ENVIRONMENTAL:
            progressions.append(f"The atmosphere becomes more {self.rng.choice(ATMOSPHERE_DESCRIPTORS)}")
        if clue.family is ClueType.ACTION_EVIDENCE:
            progressions.append("New evidence shifts the investigation")

        return Impact(
            suspicion_changes=changes,
            new_investigation_targets=list(clue.target_players),
            strategic_value=strategic_value(clue, state),
            narrative_progressions=progressions,
            follow_up_clues=list(clue.related_clues),
        )
