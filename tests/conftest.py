"""Shared fixtures: a six-player table, clue builders, and wired engines."""

from __future__ import annotations

from typing import Any, Dict, List

import pytest

from clueflow.config import load_settings
from clueflow.domain.enums import AbilityType, Alignment, ClueType, RoleType
from clueflow.domain.game import (
    ActiveAbility,
    AssignedRole,
    GameState,
    Player,
    RoleAbility,
    RoleDefinition,
    Scenario,
)
from clueflow.domain.models import Clue
from clueflow.generation.content import FailingGenerator
from clueflow.lifecycle.system import build_clue_system
from clueflow.persistence.repository import ClueRepository
from clueflow.persistence.store import MemoryStore
from clueflow.util.rng import Rng

DETECTIVE = RoleDefinition(
    id="detective",
    name="Detective",
    alignment=Alignment.TOWN,
    type=RoleType.INVESTIGATIVE,
    abilities=[RoleAbility(name="Investigate", type=AbilityType.INVESTIGATE)],
)
DOCTOR = RoleDefinition(
    id="doctor",
    name="Doctor",
    alignment=Alignment.TOWN,
    type=RoleType.PROTECTIVE,
    abilities=[RoleAbility(name="Heal", type=AbilityType.PROTECT)],
)
VILLAGER = RoleDefinition(id="villager", name="Villager", alignment=Alignment.TOWN)
MAFIOSO = RoleDefinition(
    id="mafioso",
    name="Mafioso",
    alignment=Alignment.MAFIA,
    type=RoleType.KILLING,
    abilities=[RoleAbility(name="Kill", type=AbilityType.KILL)],
)

ROLES = [DETECTIVE, DOCTOR, VILLAGER, MAFIOSO]


def make_player(player_id: str, role: RoleDefinition, uses: int = 3, **fields: Any) -> Player:
    abilities = [ActiveAbility(ability=ability, remaining_uses=uses) for ability in role.abilities]
    return Player(
        id=player_id,
        name=fields.pop("name", player_id.capitalize()),
        role=AssignedRole(definition=role, abilities=abilities),
        **fields,
    )


def make_clue(**fields: Any) -> Clue:
    data: Dict[str, Any] = {
        "title": "Telltale Signs",
        "content": "Mud from the castle moat clings to a boot.",
        "clue_type": ClueType.ROLE_HINT,
    }
    data.update(fields)
    return Clue(**data)


def make_state(players: List[Player], **fields: Any) -> GameState:
    data: Dict[str, Any] = {
        "id": "game-1",
        "scenario": Scenario(name="Blackwater Keep", theme="medieval", setting="the great hall"),
        "players": players,
        "alive_players": [player.id for player in players],
    }
    data.update(fields)
    return GameState(**data)


@pytest.fixture
def players() -> List[Player]:
    """Town 4 (detective, doctor, two villagers), mafia 2."""
    return [
        make_player("alice", DETECTIVE, suspicions={"erin": 0.2}),
        make_player("bob", DOCTOR, suspicions={"erin": 0.5}),
        make_player("carol", VILLAGER, suspicions={"alice": 0.9}),
        make_player("dave", VILLAGER, suspicions={"alice": 0.3}),
        make_player("erin", MAFIOSO, suspicions={"carol": 0.7}),
        make_player("frank", MAFIOSO, suspicions={"carol": 0.1}),
    ]


@pytest.fixture
def game_state(players) -> GameState:
    return make_state(players)


@pytest.fixture
def settings():
    return load_settings()


@pytest.fixture
def repository() -> ClueRepository:
    return ClueRepository(MemoryStore())


@pytest.fixture
def system(settings):
    return build_clue_system(rng=Rng(7), settings=settings)


@pytest.fixture
def offline_system(settings):
    return build_clue_system(generator=FailingGenerator(), rng=Rng(7), settings=settings)
