"""Game snapshots supplied by the surrounding engine on every call."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from clueflow.domain.enums import (
    AbilityType,
    Alignment,
    GameEventKind,
    GamePhase,
    PlayerStatus,
    RoleType,
)
from clueflow.util.ids import new_id


class Scenario(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    name: str
    theme: str
    setting: str
    description: str = ""
    lore: str = ""
    custom_rules: List[str] = Field(default_factory=list)


class RoleAbility(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    type: AbilityType
    description: str = ""


class RoleDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    alignment: Alignment
    type: RoleType = RoleType.VANILLA
    description: str = ""
    abilities: List[RoleAbility] = Field(default_factory=list)


class ActiveAbility(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ability: RoleAbility
    remaining_uses: int = 1
    is_blocked: bool = False
    last_used_round: Optional[int] = None


class AssignedRole(BaseModel):
    model_config = ConfigDict(extra="forbid")

    definition: RoleDefinition
    abilities: List[ActiveAbility] = Field(default_factory=list)
    teammates: List[str] = Field(default_factory=list)

    def abilities_of(self, ability_type: AbilityType) -> List[ActiveAbility]:
        return [entry for entry in self.abilities if entry.ability.type == ability_type]

    def has_ability(self, *ability_types: AbilityType) -> bool:
        return any(entry.ability.type in ability_types for entry in self.abilities)


class Communication(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    sender: str
    recipient: str = "all"
    content: str = ""
    round: int = 1
    phase: GamePhase = GamePhase.DAY_DISCUSSION
    is_public: bool = True


class Vote(BaseModel):
    model_config = ConfigDict(extra="forbid")

    voter_id: str
    target_id: str
    round: int = 1
    sequence: int = 0


class VotingResults(BaseModel):
    model_config = ConfigDict(extra="forbid")

    round: int = 1
    votes: List[Vote] = Field(default_factory=list)
    eliminated: List[str] = Field(default_factory=list)
    tiebreaker: Optional[str] = None
    abstentions: List[str] = Field(default_factory=list)


class GameEvent(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    kind: GameEventKind
    description: str = ""
    affected_players: List[str] = Field(default_factory=list)
    is_public: bool = True
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[datetime] = None


class Player(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    name: str
    role: AssignedRole
    status: PlayerStatus = PlayerStatus.ALIVE
    suspicions: Dict[str, float] = Field(default_factory=dict)
    communications: List[Communication] = Field(default_factory=list)
    action_history: List[str] = Field(default_factory=list)

    @property
    def alignment(self) -> Alignment:
        return self.role.definition.alignment

    @property
    def average_suspicion(self) -> float:
        if not self.suspicions:
            return 0.0
        return sum(self.suspicions.values()) / len(self.suspicions)


class GameState(BaseModel):
    """Read-only view of one game at one moment."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=new_id)
    phase: GamePhase = GamePhase.DAY_DISCUSSION
    round: int = 1
    scenario: Scenario
    players: List[Player] = Field(default_factory=list)
    alive_players: List[str] = Field(default_factory=list)
    eliminated_players: List[str] = Field(default_factory=list)
    voting_results: Optional[VotingResults] = None
    voting_history: List[Vote] = Field(default_factory=list)
    communications: List[Communication] = Field(default_factory=list)
    events: List[GameEvent] = Field(default_factory=list)
    revealed_information: List[str] = Field(default_factory=list)

    @property
    def total_players(self) -> int:
        return len(self.alive_players) + len(self.eliminated_players)

    @property
    def elimination_ratio(self) -> float:
        total = self.total_players
        if total == 0:
            return 0.0
        return len(self.eliminated_players) / total

    def player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def alignment_of(self, player_id: str) -> Optional[Alignment]:
        player = self.player(player_id)
        return player.alignment if player else None

    def eliminated_with(self, alignment: Alignment) -> int:
        return sum(1 for player_id in self.eliminated_players if self.alignment_of(player_id) == alignment)

    def living_players(self) -> List[Player]:
        alive = set(self.alive_players)
        return [player for player in self.players if player.id in alive]
