"""Typed access to clues, schedules, and game records in a key-value store."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from clueflow.config import StorageConfig
from clueflow.domain.game import GameState
from clueflow.domain.models import (
    Clue,
    Reveal,
    ScheduledReveal,
    clue_from_payload,
    clue_to_payload,
)
from clueflow.persistence.store import KeyValueStore


def clue_key(clue_id: str) -> str:
    return f"clue:{clue_id}"


def schedule_key(game_id: str) -> str:
    return f"schedule:{game_id}"


def game_clues_key(game_id: str) -> str:
    return f"game:{game_id}:clues"


def game_state_key(game_id: str) -> str:
    return f"game:{game_id}:state"


def reveals_key(game_id: str) -> str:
    return f"game:{game_id}:reveals"


def profile_key(player_id: str) -> str:
    return f"profile:{player_id}"


class ClueRepository:
    """Last-write-wins persistence; callers serialize writes with their own locks."""

    def __init__(self, store: KeyValueStore, config: StorageConfig | None = None) -> None:
        self.store = store
        self.config = config or StorageConfig()

    # Clues

    def load_clue(self, clue_id: str) -> Optional[Clue]:
        payload = self.store.get(clue_key(clue_id))
        if payload is None:
            return None
        return clue_from_payload(payload)

    def save_clue(self, clue: Clue) -> None:
        self.store.set(clue_key(clue.id), clue_to_payload(clue), self.config.clue_ttl)

    def delete_clue(self, clue_id: str) -> None:
        self.store.delete(clue_key(clue_id))

    def register_game_clues(self, game_id: str, clues: List[Clue]) -> None:
        """Persist clues and add their ids to the game's clue index."""
        ids = self.game_clue_ids(game_id)
        for clue in clues:
            self.save_clue(clue)
            if clue.id not in ids:
                ids.append(clue.id)
        self.store.set(game_clues_key(game_id), ids, self.config.game_ttl)

    def game_clue_ids(self, game_id: str) -> List[str]:
        return list(self.store.get(game_clues_key(game_id)) or [])

    def load_game_clues(self, game_id: str) -> List[Clue]:
        clues = []
        for clue_id in self.game_clue_ids(game_id):
            clue = self.load_clue(clue_id)
            if clue is not None:
                clues.append(clue)
        return clues

    # Schedules

    def load_schedule(self, game_id: str) -> List[ScheduledReveal]:
        raw = self.store.get(schedule_key(game_id)) or []
        return [ScheduledReveal.model_validate(entry) for entry in raw]

    def save_schedule(self, game_id: str, entries: List[ScheduledReveal]) -> None:
        if not entries:
            self.store.delete(schedule_key(game_id))
            return
        payload = [entry.model_dump(mode="json") for entry in entries]
        self.store.set(schedule_key(game_id), payload, self.config.schedule_ttl)

    # Game snapshots and reveal log

    def load_game_state(self, game_id: str) -> Optional[GameState]:
        payload = self.store.get(game_state_key(game_id))
        if payload is None:
            return None
        return GameState.model_validate(payload)

    def save_game_state(self, state: GameState) -> None:
        self.store.set(game_state_key(state.id), state.model_dump(mode="json"), self.config.game_ttl)

    def append_reveal(self, reveal: Reveal) -> None:
        log = self.store.get(reveals_key(reveal.game_id)) or []
        log.append(reveal.model_dump(mode="json"))
        self.store.set(reveals_key(reveal.game_id), log, self.config.game_ttl)

    def load_reveals(self, game_id: str) -> List[Reveal]:
        return [Reveal.model_validate(entry) for entry in self.store.get(reveals_key(game_id)) or []]

    # Player profiles

    def load_profile(self, player_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get(profile_key(player_id))

    def save_profile(self, player_id: str, profile: Dict[str, Any]) -> None:
        self.store.set(profile_key(player_id), profile, self.config.profile_ttl)

    def invalidate_profile(self, player_id: str) -> None:
        self.store.delete(profile_key(player_id))
