"""Per-game queue of pending reveals."""

from __future__ import annotations

import threading
from typing import List

from clueflow.domain.models import ScheduledReveal
from clueflow.persistence.repository import ClueRepository
from clueflow.util.locks import LockRegistry


class RevealSchedule:
    """Schedule entries persisted per game; hold `lock(game_id)` around read-modify-write."""

    def __init__(self, repository: ClueRepository) -> None:
        self.repository = repository
        self._locks = LockRegistry(threading.RLock)

    def lock(self, game_id: str):
        return self._locks.hold(game_id)

    def add(self, entry: ScheduledReveal) -> None:
        """Add an entry; a clue already queued is replaced by the newer entry."""
        with self.lock(entry.game_id):
            entries = [e for e in self.repository.load_schedule(entry.game_id) if e.clue_id != entry.clue_id]
            entries.append(entry)
            self.repository.save_schedule(entry.game_id, entries)

    def remove(self, game_id: str, clue_id: str) -> bool:
        with self.lock(game_id):
            entries = self.repository.load_schedule(game_id)
            kept = [e for e in entries if e.clue_id != clue_id]
            if len(kept) == len(entries):
                return False
            self.repository.save_schedule(game_id, kept)
            return True

    def entries(self, game_id: str) -> List[ScheduledReveal]:
        """Pending entries, highest priority first, ties by clue id."""
        with self.lock(game_id):
            entries = self.repository.load_schedule(game_id)
        return sorted(entries, key=lambda e: (-e.priority, e.clue_id))

    def contains(self, game_id: str, clue_id: str) -> bool:
        return any(entry.clue_id == clue_id for entry in self.entries(game_id))

    def clear(self, game_id: str) -> None:
        with self.lock(game_id):
            self.repository.save_schedule(game_id, [])
