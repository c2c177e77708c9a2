"""Clue, reveal, and investigation records."""

from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from clueflow.domain.enums import (
    BehaviorType,
    ClueState,
    ClueType,
    ConditionType,
    Difficulty,
    EvidenceKind,
    EvidenceStrength,
    FindingType,
    GamePhase,
    HerringType,
    InvestigationMethod,
    Reliability,
    RevealMethod,
    RevealTrigger,
    SocialType,
    StrategicValue,
    Verifiability,
    clue_family,
)
from clueflow.domain.errors import AlreadyRevealedError, ClueExpiredError, PreconditionError
from clueflow.util.ids import new_id

INFORMATION_RANGE = (1, 10)
MISDIRECTION_RANGE = (0, 10)

LIFECYCLE_FIELDS = frozenset({"state", "revealed_at", "revealed_by"})
FROZEN_ON_REVEAL = frozenset({"information_value", "misdirection_level"})


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _unique(values: List[str]) -> List[str]:
    seen: set[str] = set()
    result: List[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


class RevealCondition(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: ConditionType
    condition: str = ""
    probability: Optional[float] = None

    @field_validator("probability")
    @classmethod
    def _clamp_probability(cls, value: Optional[float]) -> Optional[float]:
        if value is None:
            return None
        return clamp(float(value), 0.0, 1.0)

    @property
    def is_restrictive(self) -> bool:
        return self.type in (ConditionType.ABILITY_USED, ConditionType.PLAYER_ELIMINATED)


def round_condition(round_number: int, probability: Optional[float] = None) -> RevealCondition:
    return RevealCondition(
        type=ConditionType.ROUND_NUMBER,
        condition=f"round >= {round_number}",
        probability=probability,
    )


class ClueGameContext(BaseModel):
    model_config = ConfigDict(extra="forbid")

    scenario: str = "default"
    theme: str = "mystery"
    player_count: int = 6
    round: int = 1
    phase: GamePhase = GamePhase.DAY_DISCUSSION
    alive_player_count: int = 6


class Clue(BaseModel):
    """A unit of partial information owned by one game.

    Numeric ranges are clamped on construction and assignment. The lifecycle
    moves unrevealed -> revealed or unrevealed -> expired, once; both end
    states are terminal and freeze information value and misdirection.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    variant: ClassVar[str] = "clue"

    id: str = Field(default_factory=new_id)
    title: str
    content: str
    clue_type: ClueType
    reliability: Reliability = Reliability.UNRELIABLE
    verifiability: Verifiability = Verifiability.HARD_TO_VERIFY
    difficulty: Difficulty = Difficulty.MEDIUM
    information_value: int = 5
    misdirection_level: int = 0
    narrative_weight: float = 0.0
    target_players: List[str] = Field(default_factory=list)
    related_clues: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    reveal_conditions: List[RevealCondition] = Field(default_factory=list)
    state: ClueState = ClueState.UNREVEALED
    revealed_at: Optional[datetime] = None
    revealed_by: Optional[str] = None
    source_role: Optional[str] = None
    context: ClueGameContext = Field(default_factory=ClueGameContext)

    _lifecycle_unlocked: bool = PrivateAttr(default=False)

    @field_validator("information_value", mode="before")
    @classmethod
    def _clamp_information(cls, value: Any) -> int:
        return int(round(clamp(float(value), *INFORMATION_RANGE)))

    @field_validator("misdirection_level", mode="before")
    @classmethod
    def _clamp_misdirection(cls, value: Any) -> int:
        return int(round(clamp(float(value), *MISDIRECTION_RANGE)))

    @field_validator("target_players", "related_clues", "tags")
    @classmethod
    def _dedupe(cls, value: List[str]) -> List[str]:
        return _unique(value)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in LIFECYCLE_FIELDS and not self._lifecycle_unlocked:
            raise PreconditionError(f"{name} changes only through the reveal lifecycle", clue_id=self.id)
        if name in FROZEN_ON_REVEAL and self.state is not ClueState.UNREVEALED:
            raise PreconditionError(f"{name} is frozen once a clue leaves play", clue_id=self.id)
        super().__setattr__(name, value)

    @property
    def family(self) -> ClueType:
        return clue_family(self.clue_type)

    @property
    def is_revealed(self) -> bool:
        return self.state is ClueState.REVEALED

    @property
    def is_pending(self) -> bool:
        return self.state is ClueState.UNREVEALED

    def mark_revealed(self, at: datetime, by: Optional[str] = None) -> None:
        if self.state is ClueState.REVEALED:
            raise AlreadyRevealedError("Clue already revealed", clue_id=self.id)
        if self.state is ClueState.EXPIRED:
            raise ClueExpiredError("Clue expired with its game", clue_id=self.id)
        self._transition(ClueState.REVEALED, revealed_at=at, revealed_by=by)

    def expire(self) -> None:
        if self.state is not ClueState.UNREVEALED:
            return
        self._transition(ClueState.EXPIRED)

    def _transition(self, state: ClueState, **fields: Any) -> None:
        self._lifecycle_unlocked = True
        try:
            for name, value in fields.items():
                setattr(self, name, value)
            self.state = state
        finally:
            self._lifecycle_unlocked = False

    def with_changes(self, **changes: Any) -> "Clue":
        """Return a re-validated copy with the given fields replaced."""
        blocked = LIFECYCLE_FIELDS.intersection(changes)
        if blocked:
            raise PreconditionError(f"Cannot copy with lifecycle fields: {sorted(blocked)}", clue_id=self.id)
        if self.state is not ClueState.UNREVEALED and FROZEN_ON_REVEAL.intersection(changes):
            raise PreconditionError("Frozen fields cannot change after reveal", clue_id=self.id)
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)

    def shares_target(self, other: "Clue") -> bool:
        return bool(set(self.target_players) & set(other.target_players))


class DirectEvidenceClue(Clue):
    variant: ClassVar[str] = "direct_evidence"

    evidence_kind: EvidenceKind = EvidenceKind.CIRCUMSTANTIAL
    evidence_strength: EvidenceStrength = EvidenceStrength.CIRCUMSTANTIAL
    points_to_player: str
    points_away_from: List[str] = Field(default_factory=list)
    verification_method: str = ""
    when_occurred: str = ""
    discovered_by: Optional[str] = None


class BehaviorObservation(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    behavior: str
    context: str
    significance: str
    reliability: float


class BehavioralClue(Clue):
    variant: ClassVar[str] = "behavioral"

    behavior_type: BehaviorType = BehaviorType.COMMUNICATION
    observations: List[BehaviorObservation] = Field(default_factory=list)
    consistency: float = 1.0
    deviation: float = 0.0
    stress_indicators: List[str] = Field(default_factory=list)
    deception_markers: List[str] = Field(default_factory=list)
    motivation_hints: List[str] = Field(default_factory=list)


class SocialClue(Clue):
    variant: ClassVar[str] = "social"

    social_type: SocialType = SocialType.ALLIANCE
    connections: List[Dict[str, Any]] = Field(default_factory=list)
    influence_map: Dict[str, float] = Field(default_factory=dict)
    clusters: List[List[str]] = Field(default_factory=list)
    anomalies: List[str] = Field(default_factory=list)
    message_frequency: Dict[str, int] = Field(default_factory=dict)


class RedHerringClue(Clue):
    variant: ClassVar[str] = "red_herring"

    herring_type: HerringType = HerringType.FALSE_EVIDENCE
    misdirection_target: str
    actual_source: Optional[str] = None
    plausibility_score: float = 0.7
    how_to_disprove: List[str] = Field(default_factory=list)
    required_evidence: List[str] = Field(default_factory=list)
    reveal_triggers: List[str] = Field(default_factory=list)
    # Strength carried over when a piece of evidence is re-cast as misdirection.
    evidence_strength: Optional[EvidenceStrength] = None

    @field_validator("plausibility_score", mode="before")
    @classmethod
    def _clamp_plausibility(cls, value: Any) -> float:
        return clamp(float(value), 0.0, 1.0)


class NarrativeClue(Clue):
    variant: ClassVar[str] = "narrative"

    setting: str = ""
    atmosphere: str = "tense"
    character_moments: List[str] = Field(default_factory=list)
    foreshadowing: List[str] = Field(default_factory=list)


class InvestigationClue(Clue):
    variant: ClassVar[str] = "investigation"

    method: Optional[InvestigationMethod] = None
    investigator_id: Optional[str] = None
    investigator_role: str = ""
    target_role: str = ""
    confidence: float = 0.0
    limitations: List[str] = Field(default_factory=list)
    follow_up_actions: List[str] = Field(default_factory=list)


CLUE_VARIANTS: Dict[str, type[Clue]] = {
    cls.variant: cls
    for cls in (
        Clue,
        DirectEvidenceClue,
        BehavioralClue,
        SocialClue,
        RedHerringClue,
        NarrativeClue,
        InvestigationClue,
    )
}


def clue_to_payload(clue: Clue) -> dict[str, Any]:
    return {"variant": clue.variant, "clue": clue.model_dump(mode="json")}


def clue_from_payload(payload: dict[str, Any]) -> Clue:
    variant = payload.get("variant", "clue")
    try:
        cls = CLUE_VARIANTS[variant]
    except KeyError:
        raise ValueError(f"Unknown clue variant: {variant}") from None
    return cls.model_validate(payload["clue"])


class Audience(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    scope: str = "all"
    player_ids: List[str] = Field(default_factory=list)

    @classmethod
    def everyone(cls) -> "Audience":
        return cls(scope="all")

    @classmethod
    def player(cls, player_id: str) -> "Audience":
        return cls(scope="player", player_ids=[player_id])

    @classmethod
    def team(cls, player_ids: List[str]) -> "Audience":
        return cls(scope="team", player_ids=list(player_ids))


class Impact(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    suspicion_changes: Dict[str, float] = Field(default_factory=dict)
    new_investigation_targets: List[str] = Field(default_factory=list)
    strategic_value: StrategicValue = StrategicValue.NEGLIGIBLE
    narrative_progressions: List[str] = Field(default_factory=list)
    follow_up_clues: List[str] = Field(default_factory=list)


class Reveal(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    clue_id: str
    game_id: str
    audience: Audience = Field(default_factory=Audience.everyone)
    revealed_by: Optional[str] = None
    method: RevealMethod
    trigger: RevealTrigger
    timestamp: datetime
    narrative_text: str
    impact: Impact


class Finding(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    type: FindingType
    content: str
    confidence: float
    verifiable: bool = False
    implications: List[str] = Field(default_factory=list)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        return clamp(float(value), 0.0, 1.0)


class ScheduledReveal(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    clue_id: str
    game_id: str
    conditions: List[RevealCondition] = Field(default_factory=list)
    priority: int = 1
    scheduled_at: datetime
    # Set for reveals queued by another reveal (chain or follow-up).
    source_clue_id: Optional[str] = None
