"""Specialised clue variants derived from the live game snapshot."""

from __future__ import annotations

from collections import Counter
import logging
from typing import List, Optional

from clueflow.domain.enums import (
    Alignment,
    BehaviorType,
    ClueType,
    Difficulty,
    EvidenceKind,
    EvidenceStrength,
    HerringType,
    InvestigationMethod,
    Reliability,
    RoleType,
    SocialType,
    Verifiability,
)
from clueflow.domain.game import GameState, Player
from clueflow.domain.models import (
    BehavioralClue,
    BehaviorObservation,
    DirectEvidenceClue,
    Finding,
    InvestigationClue,
    NarrativeClue,
    RedHerringClue,
    SocialClue,
)
from clueflow.generation.clues import MAX_HERRING_MISDIRECTION, clue_context, default_reveal_conditions
from clueflow.generation.content import (
    ContentGenerator,
    Generated,
    GenerationBrief,
    parse_clue_draft,
    pick_title,
)
from clueflow.generation.social import analyze_social
from clueflow.util.grammar import join_sentences, label
from clueflow.util.rng import Rng

logger = logging.getLogger(__name__)

SIGNIFICANCE_WEIGHT = {"high": 1.0, "medium": 0.6, "low": 0.3}

VERIFICATION_METHODS = {
    EvidenceKind.PHYSICAL: "Physical examination of the evidence",
    EvidenceKind.DIGITAL: "Digital forensic review",
    EvidenceKind.TESTIMONIAL: "Corroborating testimony",
    EvidenceKind.CIRCUMSTANTIAL: "Cross-reference witness accounts",
    EvidenceKind.FORENSIC: "Laboratory analysis",
}

DISPROOF = {
    HerringType.FALSE_EVIDENCE: (
        ["Verify where the evidence came from", "Check alibis for the time in question"],
        ["Chain of custody", "Alibi confirmation"],
    ),
    HerringType.MISLEADING_BEHAVIOR: (
        ["Observe the player over several rounds", "Compare behaviour with known role patterns"],
        ["Behavioural history"],
    ),
    HerringType.PLANTED_INFORMATION: (
        ["Trace the information back to its source", "Cross-check with trusted players"],
        ["Source testimony"],
    ),
    HerringType.COINCIDENCE: (
        ["Establish an innocent explanation", "Show the pattern does not repeat"],
        ["Timeline reconstruction"],
    ),
    HerringType.MISINTERPRETATION: (
        ["Re-examine the original context", "Ask the player to explain"],
        ["Original context"],
    ),
}

REVEAL_TRIGGERS = [
    "Contradictory evidence emerges",
    "Investigation reveals inconsistencies",
    "Alternative explanations become apparent",
]


def evidence_kind_for(theme: str) -> EvidenceKind:
    theme = theme.lower()
    if "modern" in theme or "cyber" in theme:
        return EvidenceKind.DIGITAL
    if "medieval" in theme or "fantasy" in theme:
        return EvidenceKind.PHYSICAL
    if "space" in theme or "sci-fi" in theme:
        return EvidenceKind.FORENSIC
    return EvidenceKind.CIRCUMSTANTIAL


def evidence_strength_for(suspicion: float) -> EvidenceStrength:
    if suspicion > 0.8:
        return EvidenceStrength.STRONG
    if suspicion > 0.6:
        return EvidenceStrength.MODERATE
    if suspicion > 0.4:
        return EvidenceStrength.WEAK
    return EvidenceStrength.CIRCUMSTANTIAL


def _by_suspicion(players: List[Player]) -> List[Player]:
    return sorted(players, key=lambda player: (-player.average_suspicion, player.id))


class SpecializedClueFactory:
    def __init__(self, generator: ContentGenerator, rng: Rng) -> None:
        self.generator = generator
        self.rng = rng

    def create_direct_evidence_clues(self, state: GameState, count: int = 2) -> List[DirectEvidenceClue]:
        living = state.living_players()
        discoverer = next((p.id for p in living if p.role.definition.type is RoleType.INVESTIGATIVE), None)
        kind = evidence_kind_for(state.scenario.theme)
        clues = []
        for suspect in _by_suspicion(living)[:count]:
            others = [p.id for p in living if p.id != suspect.id][:2]
            fallback = f"{label(kind).capitalize()} evidence ties {suspect.name} to the events in {state.scenario.setting}."
            clues.append(
                DirectEvidenceClue(
                    title=pick_title(ClueType.DIRECT_EVIDENCE, self.rng),
                    content=self._content(state, ClueType.DIRECT_EVIDENCE, [suspect.name], fallback),
                    clue_type=ClueType.DIRECT_EVIDENCE,
                    reliability=Reliability.RELIABLE,
                    verifiability=Verifiability.EASILY_VERIFIED,
                    difficulty=Difficulty.MEDIUM,
                    information_value=7,
                    narrative_weight=3,
                    target_players=[suspect.id],
                    tags=["evidence", str(kind)],
                    reveal_conditions=default_reveal_conditions(),
                    context=clue_context(state),
                    evidence_kind=kind,
                    evidence_strength=evidence_strength_for(suspect.average_suspicion),
                    points_to_player=suspect.id,
                    points_away_from=others,
                    verification_method=VERIFICATION_METHODS[kind],
                    when_occurred=f"Round {max(1, state.round - 1)} during {label(state.phase)}",
                    discovered_by=discoverer,
                )
            )
        logger.debug("Built %d direct evidence clues", len(clues))
        return clues

    def create_behavioral_clues(self, state: GameState) -> List[BehavioralClue]:
        clues = []
        rounds = max(1, state.round)
        for player in state.living_players():
            per_round = Counter(vote.round for vote in state.voting_history if vote.voter_id == player.id)
            changes = sum(max(0, count - 1) for count in per_round.values())
            messages = sum(1 for message in state.communications if message.sender == player.id)
            rate = messages / rounds

            observations = []
            if changes > 0:
                observations.append(
                    BehaviorObservation(
                        behavior="vote_change",
                        context=f"Changed vote {changes} times",
                        significance="high" if changes > 2 else "medium",
                        reliability=0.9,
                    )
                )
            if rate > 3 or rate < 0.5:
                observations.append(
                    BehaviorObservation(
                        behavior="message_frequency",
                        context="Very talkative" if rate > 3 else "Unusually quiet",
                        significance="medium",
                        reliability=0.8,
                    )
                )
            observations = [o for o in observations if SIGNIFICANCE_WEIGHT[o.significance] >= 0.6]
            if not observations:
                continue

            spread = sum((o.reliability - 0.8) ** 2 for o in observations) / len(observations)
            votes_per_round = sum(per_round.values()) / rounds
            deviation = (abs(votes_per_round - 1) + abs(rate - 2) / 2) / 2
            stress = []
            if changes > 1:
                stress.append("Frequent vote changes")
            if rate < 0.5:
                stress.append("Withdrawal from discussion")
            fallback = f"{player.name}: " + join_sentences([o.context for o in observations])
            clues.append(
                BehavioralClue(
                    title=pick_title(ClueType.BEHAVIORAL, self.rng),
                    content=self._content(state, ClueType.BEHAVIORAL, [player.name], fallback),
                    clue_type=ClueType.BEHAVIORAL,
                    reliability=Reliability.UNRELIABLE,
                    verifiability=Verifiability.HARD_TO_VERIFY,
                    difficulty=Difficulty.MEDIUM,
                    information_value=5,
                    misdirection_level=2,
                    narrative_weight=2,
                    target_players=[player.id],
                    tags=["behavior", player.name],
                    reveal_conditions=default_reveal_conditions(),
                    context=clue_context(state),
                    behavior_type=BehaviorType.VOTING if changes else BehaviorType.COMMUNICATION,
                    observations=observations,
                    consistency=max(0.0, 1 - spread * 2),
                    deviation=round(deviation, 2),
                    stress_indicators=stress,
                    deception_markers=["Inconsistent voting rationale"] if changes > 2 else [],
                    motivation_hints=[_motivation(player.alignment)],
                )
            )
        return clues

    def create_social_clues(self, state: GameState) -> List[SocialClue]:
        analysis = analyze_social(state)
        anomalies = analysis.significant_anomalies()
        if not anomalies and not analysis.clusters:
            return []
        involved = [player_id for anomaly in anomalies for player_id in anomaly.players]
        if anomalies:
            social_type = SocialType.ALLIANCE
            fallback = join_sentences([anomaly.description for anomaly in anomalies])
        else:
            social_type = SocialType.INFLUENCE
            involved = list(analysis.clusters[0])
            names = ", ".join(_names(state, involved))
            fallback = f"A tight circle keeps forming around {names}"
        return [
            SocialClue(
                title=pick_title(ClueType.SOCIAL, self.rng),
                content=self._content(state, ClueType.SOCIAL, _names(state, involved), fallback),
                clue_type=ClueType.SOCIAL,
                reliability=Reliability.RELIABLE,
                verifiability=Verifiability.HARD_TO_VERIFY,
                difficulty=Difficulty.HARD,
                information_value=6,
                misdirection_level=1,
                narrative_weight=3,
                target_players=involved,
                tags=["social", str(social_type)],
                reveal_conditions=default_reveal_conditions(),
                context=clue_context(state),
                social_type=social_type,
                connections=analysis.connections,
                influence_map=analysis.influence,
                clusters=analysis.clusters,
                anomalies=[anomaly.description for anomaly in anomalies],
                message_frequency=analysis.message_frequency,
            )
        ]

    def create_red_herrings(self, state: GameState, count: int = 2) -> List[RedHerringClue]:
        innocents = _by_suspicion(
            [p for p in state.living_players() if p.alignment in (Alignment.TOWN, Alignment.NEUTRAL)]
        )
        if not innocents:
            return []
        source = next((p.id for p in state.players if p.alignment is Alignment.MAFIA), None)
        clues = []
        for index in range(count):
            target = innocents[index % len(innocents)]
            herring_type = self.rng.choice(list(HerringType))
            disprove, required = DISPROOF[herring_type]
            fallback = f"Something about {target.name} does not add up: a sign of {label(herring_type)}."
            clues.append(
                RedHerringClue(
                    title=pick_title(ClueType.RED_HERRING, self.rng),
                    content=self._content(state, ClueType.RED_HERRING, [target.name], fallback),
                    clue_type=ClueType.RED_HERRING,
                    reliability=Reliability.MISLEADING,
                    verifiability=Verifiability.HARD_TO_VERIFY,
                    difficulty=Difficulty.HARD,
                    information_value=3,
                    misdirection_level=MAX_HERRING_MISDIRECTION,
                    narrative_weight=2,
                    target_players=[target.id],
                    tags=["misdirection", str(herring_type)],
                    reveal_conditions=default_reveal_conditions(),
                    context=clue_context(state),
                    herring_type=herring_type,
                    misdirection_target=target.id,
                    actual_source=source,
                    plausibility_score=min(1.0, 0.7 + target.average_suspicion * 0.3),
                    how_to_disprove=list(disprove),
                    required_evidence=list(required),
                    reveal_triggers=list(REVEAL_TRIGGERS),
                )
            )
        return clues

    def create_narrative_clues(self, state: GameState, count: int = 2) -> List[NarrativeClue]:
        atmosphere = "ominous" if "dark" in state.scenario.theme.lower() else "mysterious"
        moments = [
            f"The absence of {name} weighs on everyone" for name in _names(state, state.eliminated_players[-2:])
        ]
        article = "An" if atmosphere[0] in "aeiou" else "A"
        clues = []
        for _ in range(count):
            fallback = f"{article} {atmosphere} hush settles over {state.scenario.setting}; something hidden is stirring."
            clues.append(
                NarrativeClue(
                    title=pick_title(ClueType.NARRATIVE, self.rng),
                    content=self._content(state, ClueType.NARRATIVE, [], fallback),
                    clue_type=ClueType.NARRATIVE,
                    reliability=Reliability.RELIABLE,
                    verifiability=Verifiability.UNVERIFIABLE,
                    difficulty=Difficulty.EASY,
                    information_value=4,
                    narrative_weight=8,
                    tags=["narrative", "atmosphere", state.scenario.theme],
                    reveal_conditions=default_reveal_conditions(),
                    context=clue_context(state),
                    setting=state.scenario.setting,
                    atmosphere=atmosphere,
                    character_moments=moments,
                    foreshadowing=[f"The truth about {state.scenario.name} draws closer"],
                )
            )
        return clues

    def create_investigation_clue(
        self,
        investigator: Player,
        target: Player,
        method: InvestigationMethod,
        findings: List[Finding],
        state: GameState,
    ) -> Optional[InvestigationClue]:
        """Fold surviving findings into one clue; None when nothing survived."""
        if not findings:
            return None
        mean = sum(f.confidence for f in findings) / len(findings)
        if mean > 0.7:
            reliability = Reliability.RELIABLE
        elif mean > 0.4:
            reliability = Reliability.UNRELIABLE
        else:
            reliability = Reliability.MISLEADING
        implications = [item for f in findings for item in f.implications]
        return InvestigationClue(
            title=f"Investigation Result: {target.name}",
            content=join_sentences([f.content for f in findings]),
            clue_type=ClueType.INVESTIGATION_RESULT,
            reliability=reliability,
            verifiability=(
                Verifiability.EASILY_VERIFIED if any(f.verifiable for f in findings) else Verifiability.HARD_TO_VERIFY
            ),
            difficulty=Difficulty.EASY if mean > 0.8 else Difficulty.MEDIUM,
            information_value=round(mean * 10),
            narrative_weight=4,
            target_players=[target.id],
            tags=["investigation", "evidence", target.name],
            source_role=investigator.role.definition.name,
            context=clue_context(state),
            method=method,
            investigator_id=investigator.id,
            investigator_role=investigator.role.definition.name,
            target_role=str(target.role.definition.type),
            confidence=round(mean, 3),
            limitations=["Based on investigation method", "Subject to interpretation"],
            follow_up_actions=implications[:3],
        )

    def _content(self, state: GameState, clue_type: ClueType, targets: List[str], fallback: str) -> str:
        brief = GenerationBrief(
            request="specialized_clue",
            theme=state.scenario.theme,
            setting=state.scenario.setting,
            scenario=state.scenario.name,
            clue_type=clue_type,
            targets=targets,
            extras={"round": state.round, "phase": str(state.phase)},
        )
        result = self.generator.generate(brief)
        if isinstance(result, Generated):
            return parse_clue_draft(result.text).content
        logger.warning("Generation failed for %s (%s); using fallback", clue_type, result.reason)
        return fallback


def retype_as_red_herring(clue: DirectEvidenceClue) -> RedHerringClue:
    """Re-cast a piece of direct evidence as misdirection aimed at the same player."""
    base = {name: getattr(clue, name) for name in ("id", "title", "content", "target_players", "tags", "context")}
    return RedHerringClue(
        **base,
        clue_type=ClueType.RED_HERRING,
        reliability=Reliability.MISLEADING,
        verifiability=clue.verifiability,
        difficulty=clue.difficulty,
        information_value=min(clue.information_value, 3),
        misdirection_level=MAX_HERRING_MISDIRECTION,
        narrative_weight=clue.narrative_weight,
        reveal_conditions=list(clue.reveal_conditions),
        herring_type=HerringType.FALSE_EVIDENCE,
        misdirection_target=clue.points_to_player,
        how_to_disprove=[clue.verification_method] if clue.verification_method else [],
        required_evidence=[label(clue.evidence_kind)],
        reveal_triggers=list(REVEAL_TRIGGERS),
        evidence_strength=clue.evidence_strength,
    )


def _motivation(alignment: Alignment) -> str:
    if alignment is Alignment.TOWN:
        return "Seems driven to find the truth"
    if alignment is Alignment.MAFIA:
        return "Appears focused on deflecting attention"
    return "Motives remain unclear"


def _names(state: GameState, player_ids: List[str]) -> List[str]:
    names = []
    for player_id in player_ids:
        player = state.player(player_id)
        names.append(player.name if player else player_id)
    return names
