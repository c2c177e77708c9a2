"""Player-initiated investigations: reliability, findings, derived clues."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from clueflow.domain.enums import (
    AbilityType,
    Alignment,
    FindingType,
    GamePhase,
    InvestigationMethod,
    RoleType,
)
from clueflow.domain.errors import PreconditionError
from clueflow.domain.game import ActiveAbility, GameState, Player
from clueflow.domain.models import Clue, Finding, Reveal, clamp
from clueflow.generation.specialized import SpecializedClueFactory
from clueflow.investigation.methods import (
    PROFILES,
    InvestigationCost,
    InvestigationRisk,
    map_ability_to_method,
)
from clueflow.persistence.repository import ClueRepository
from clueflow.revelation.manager import RevelationManager
from clueflow.util.ids import new_id, utc_now
from clueflow.util.locks import LockRegistry

logger = logging.getLogger(__name__)

RELIABILITY_RANGE = (0.1, 0.95)
MIN_CONFIDENCE = 0.3
MAX_OPTION_TARGETS = 3


class InvestigationResult(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(default_factory=new_id)
    game_id: str
    investigator_id: str
    target_id: str
    method: InvestigationMethod
    findings: List[Finding] = Field(default_factory=list)
    reliability: float
    cost: InvestigationCost
    success: bool
    clue: Optional[Clue] = None
    round: int = 1
    timestamp: datetime = Field(default_factory=utc_now)


@dataclass(frozen=True)
class InvestigationOption:
    ability_name: str
    method: InvestigationMethod
    target_id: str
    description: str
    cost: InvestigationCost
    risk: InvestigationRisk
    expected_reliability: float
    requirements: Tuple[str, ...] = field(default_factory=tuple)
    cooldown: int = 0


def investigation_reliability(
    investigator: Player,
    target: Player,
    ability: ActiveAbility,
    phase: GamePhase,
) -> float:
    reliability = 0.7
    if investigator.role.definition.type is RoleType.INVESTIGATIVE:
        reliability += 0.15
    if target.role.has_ability(AbilityType.BLOCK, AbilityType.PROTECT):
        reliability -= 0.1
    if phase is GamePhase.NIGHT_ACTIONS:
        reliability += 0.1
    if ability.remaining_uses <= 1:
        reliability += 0.05
    return clamp(reliability, *RELIABILITY_RANGE)


def generate_findings(
    method: InvestigationMethod,
    target: Player,
    reliability: float,
    state: GameState,
) -> List[Finding]:
    """Method-specific findings; those under the confidence floor are dropped."""
    findings: List[Finding] = []
    role_type = target.role.definition.type
    if method is InvestigationMethod.DIRECT_QUESTIONING:
        if reliability > 0.6:
            strength = "strong" if reliability > 0.8 else "weak"
            findings.append(
                Finding(
                    type=FindingType.ROLE_INFORMATION,
                    content=f"Target shows {strength} signs of being a {role_type} type role",
                    confidence=reliability * 0.9,
                    implications=[f"May have {role_type} abilities", "Worth further investigation"],
                )
            )
        if reliability > 0.5:
            leaning = "trustworthy" if target.alignment is Alignment.TOWN else "suspicious"
            findings.append(
                Finding(
                    type=FindingType.ALIGNMENT_HINT,
                    content=f"Target's responses suggest they are {leaning}",
                    confidence=reliability * 0.8,
                    implications=[f"Likely {leaning}"],
                )
            )
    elif method is InvestigationMethod.BEHAVIORAL_OBSERVATION:
        if target.action_history and reliability > 0.5:
            activity = "high" if len(target.action_history) > 2 else "low"
            tendency = "defensive" if target.alignment is Alignment.TOWN else "aggressive"
            findings.append(
                Finding(
                    type=FindingType.BEHAVIORAL_PATTERN,
                    content=f"Target shows {activity} activity levels with {tendency} tendencies",
                    confidence=reliability * 0.7,
                    verifiable=True,
                    implications=[f"Watch for {tendency} play"],
                )
            )
    elif method is InvestigationMethod.VOTING_PATTERN_ANALYSIS:
        if state.voting_results is not None and reliability > 0.4:
            votes = [vote for vote in state.voting_history if vote.voter_id == target.id]
            votes += [vote for vote in state.voting_results.votes if vote.voter_id == target.id and vote not in votes]
            if votes:
                pattern = "consistent" if len(votes) > 1 else "inconsistent"
                findings.append(
                    Finding(
                        type=FindingType.BEHAVIORAL_PATTERN,
                        content=f"Target's voting pattern shows {pattern} decision-making",
                        confidence=reliability * 0.6,
                        verifiable=True,
                        implications=["Compare with other voting records"],
                    )
                )
    elif method is InvestigationMethod.PSYCHOLOGICAL_PROFILING:
        if reliability > 0.5:
            mood = "high stress" if target.average_suspicion > 0.6 else "normal behavior"
            findings.append(
                Finding(
                    type=FindingType.BEHAVIORAL_PATTERN,
                    content=f"Psychological profile suggests {mood} patterns",
                    confidence=reliability * 0.75,
                    implications=["Profile may guide questioning"],
                )
            )
    else:
        outcome = "conclusive" if reliability > 0.7 else "inconclusive"
        findings.append(
            Finding(
                type=FindingType.ROLE_INFORMATION,
                content=f"Investigation yields {outcome} information about target",
                confidence=reliability,
            )
        )
    return [finding for finding in findings if finding.confidence >= MIN_CONFIDENCE]


class InvestigationSimulator:
    def __init__(
        self,
        repository: ClueRepository,
        factory: SpecializedClueFactory,
        revelation: RevelationManager,
    ) -> None:
        self.repository = repository
        self.factory = factory
        self.revelation = revelation
        self._locks = LockRegistry()

    def conduct_investigation(self, investigator: Player, target: Player, state: GameState) -> InvestigationResult:
        """Run one investigation; one at a time per investigator."""
        with self._locks.hold(investigator.id):
            abilities = investigator.role.abilities_of(AbilityType.INVESTIGATE)
            if not abilities:
                raise PreconditionError(
                    "Investigator lacks an investigate ability",
                    actor_id=investigator.id,
                    game_id=state.id,
                )
            ability = next((a for a in abilities if not a.is_blocked), None)
            if ability is None:
                raise PreconditionError(
                    "Every investigate ability is blocked",
                    actor_id=investigator.id,
                    game_id=state.id,
                )
            method = map_ability_to_method(ability.ability.name)
            reliability = investigation_reliability(investigator, target, ability, state.phase)
            findings = generate_findings(method, target, reliability, state)
            clue = self.factory.create_investigation_clue(investigator, target, method, findings, state)
            if clue is not None:
                self.repository.register_game_clues(state.id, [clue])
            result = InvestigationResult(
                game_id=state.id,
                investigator_id=investigator.id,
                target_id=target.id,
                method=method,
                findings=findings,
                reliability=reliability,
                cost=PROFILES[method].cost,
                success=bool(findings),
                clue=clue,
                round=state.round,
            )
        logger.info(
            "%s investigated %s by %s: %d findings at %.2f",
            investigator.id,
            target.id,
            method,
            len(findings),
            reliability,
        )
        return result

    def get_available_investigations(self, player: Player, state: GameState) -> List[InvestigationOption]:
        targets = [p for p in state.living_players() if p.id != player.id][:MAX_OPTION_TARGETS]
        options = []
        for ability in player.role.abilities_of(AbilityType.INVESTIGATE):
            if ability.is_blocked:
                continue
            method = map_ability_to_method(ability.ability.name)
            profile = PROFILES[method]
            cooldown = 0
            if ability.last_used_round is not None:
                cooldown = max(0, ability.last_used_round + 1 - state.round)
            for target in targets:
                options.append(
                    InvestigationOption(
                        ability_name=ability.ability.name,
                        method=method,
                        target_id=target.id,
                        description=profile.description,
                        cost=profile.cost,
                        risk=profile.risk,
                        expected_reliability=profile.expected_reliability,
                        requirements=profile.requirements,
                        cooldown=cooldown,
                    )
                )
        return options

    def process_investigation_result(self, result: InvestigationResult, state: GameState) -> Reveal:
        """Reveal the derived clue to the investigator straight away."""
        if result.clue is None:
            raise PreconditionError(
                "Investigation produced no clue to reveal",
                actor_id=result.investigator_id,
                game_id=result.game_id,
            )
        return self.revelation.reveal_clue(
            result.clue.id,
            result.game_id,
            triggered_by=result.investigator_id,
            state=state,
        )
