from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from clueflow.domain.enums import (
    AbilityType,
    Alignment,
    GameEventKind,
    GamePhase,
    PlayerStatus,
    RoleType,
)
from clueflow.domain.game import (
    ActiveAbility,
    AssignedRole,
    GameEvent,
    GameState,
    Player,
    RoleAbility,
    RoleDefinition,
    Scenario,
)
from clueflow.lifecycle.system import build_clue_system, create_standard_clue_config
from clueflow.persistence.store import SqliteStore
from clueflow.util.rng import Rng

DETECTIVE = RoleDefinition(
    id="detective",
    name="Detective",
    alignment=Alignment.TOWN,
    type=RoleType.INVESTIGATIVE,
    abilities=[RoleAbility(name="Investigate", type=AbilityType.INVESTIGATE)],
)
VILLAGER = RoleDefinition(id="villager", name="Villager", alignment=Alignment.TOWN)
MAFIOSO = RoleDefinition(
    id="mafioso",
    name="Mafioso",
    alignment=Alignment.MAFIA,
    type=RoleType.KILLING,
    abilities=[RoleAbility(name="Kill", type=AbilityType.KILL)],
)


def build_game(players: int, rng: Rng) -> tuple[GameState, list[RoleDefinition]]:
    mafia = max(1, players // 4)
    roles = [DETECTIVE] + [MAFIOSO] * mafia + [VILLAGER] * (players - mafia - 1)
    rng.shuffle(roles)
    roster = []
    for index, role in enumerate(roles):
        abilities = [ActiveAbility(ability=ability, remaining_uses=3) for ability in role.abilities]
        roster.append(
            Player(
                id=f"p{index + 1}",
                name=f"Player {index + 1}",
                role=AssignedRole(definition=role, abilities=abilities),
                suspicions={"p1": round(rng.random(), 2)},
            )
        )
    state = GameState(
        id="demo",
        scenario=Scenario(name="Harbor Lights", theme="modern noir", setting="the harbor office"),
        players=roster,
        alive_players=[player.id for player in roster],
    )
    return state, [DETECTIVE, VILLAGER, MAFIOSO]


def main() -> None:
    parser = argparse.ArgumentParser(description="Drive a simulated game through the clue engine.")
    parser.add_argument("--seed", type=int, default=7)
    parser.add_argument("--players", type=int, default=8)
    parser.add_argument("--rounds", type=int, default=6)
    parser.add_argument("--difficulty", choices=("easy", "medium", "hard"), default="medium")
    parser.add_argument("--db", type=str, default=":memory:")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    rng = Rng(args.seed)
    system = build_clue_system(store=SqliteStore(args.db), rng=rng.fork("engine"))
    state, roles = build_game(args.players, rng.fork("table"))

    clue_set = system.generate_game_clues(create_standard_clue_config(state, roles, args.difficulty))
    meta = clue_set.metadata
    print(f"Generated {meta.total_clues} clues, mean value {meta.average_information_value:.1f}, balance {meta.balance_score}")
    for clue in clue_set.clues:
        print(f"- [{clue.clue_type}] {clue.title} (iv {clue.information_value}, misdirection {clue.misdirection_level})")

    detective = next(p for p in state.players if p.role.definition.id == "detective")
    for round_number in range(1, args.rounds + 1):
        state = state.model_copy(update={"round": round_number, "phase": GamePhase.NIGHT_ACTIONS})
        living = [p for p in state.alive_players if p != detective.id]
        if detective.id in state.alive_players and living:
            result = system.conduct_player_investigation(detective.id, rng.choice(living), state)
            if result.clue is not None:
                reveal = system.reveal_investigation(result, state)
                print(f"R{round_number} investigation: {reveal.narrative_text}")

        victim = rng.choice(state.alive_players)
        players = [
            p.model_copy(update={"status": PlayerStatus.ELIMINATED}) if p.id == victim else p for p in state.players
        ]
        state = state.model_copy(
            update={
                "players": players,
                "alive_players": [p for p in state.alive_players if p != victim],
                "eliminated_players": [*state.eliminated_players, victim],
                "phase": GamePhase.DAY_DISCUSSION,
            }
        )
        event = GameEvent(kind=GameEventKind.ELIMINATION, description=f"{victim} was eliminated", affected_players=[victim])
        for reveal in system.process_game_event(event, state):
            print(f"R{round_number} {reveal.method}: {reveal.narrative_text}")
        if len(state.alive_players) <= 2:
            break

    expired = system.end_game(state.id)
    analysis = system.analyze_performance(state.id)
    print(f"Revealed {analysis.revealed_clues}/{analysis.total_clues}; expired {expired}")
    for note in analysis.recommendations:
        print(f"* {note}")


if __name__ == "__main__":
    main()
