"""Key-value stores and the typed repository on top of them."""

from datetime import datetime, timezone

import pytest

from clueflow.domain.enums import ClueType
from clueflow.domain.errors import StorageError
from clueflow.domain.models import ScheduledReveal, SocialClue
from clueflow.persistence.store import MemoryStore, SqliteStore

from conftest import make_clue


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, clock):
    if request.param == "memory":
        yield MemoryStore(default_ttl=60, clock=clock)
    else:
        sqlite_store = SqliteStore(default_ttl=60, clock=clock)
        yield sqlite_store
        sqlite_store.close()


def test_values_round_trip(store):
    store.set("k", {"a": [1, 2], "b": "x"})
    assert store.get("k") == {"a": [1, 2], "b": "x"}


def test_entries_expire_after_ttl(store, clock):
    store.set("short", 1, ttl=10)
    store.set("default", 2)
    clock.now += 11
    assert store.get("short") is None
    assert store.get("default") == 2
    clock.now += 60
    assert store.get("default") is None


def test_delete_and_missing(store):
    store.set("k", 1)
    store.delete("k")
    store.delete("never-set")
    assert store.get("k") is None


def test_unserializable_value_raises(store):
    with pytest.raises(StorageError):
        store.set("bad", {"value": object()})


def test_memory_cleanup_counts_expired(clock):
    store = MemoryStore(default_ttl=5, clock=clock)
    store.set("a", 1)
    store.set("b", 2, ttl=100)
    clock.now += 6
    assert store.cleanup_expired() == 1
    assert store.get("b") == 2


def test_sqlite_persists_between_connections(tmp_path, clock):
    path = tmp_path / "clues.db"
    first = SqliteStore(path, clock=clock)
    first.set("clue:1", {"title": "x"})
    first.close()
    second = SqliteStore(path, clock=clock)
    assert second.get("clue:1") == {"title": "x"}
    second.close()


# =============================================================================
# REPOSITORY
# =============================================================================

def test_repository_keeps_clue_variant(repository):
    clue = SocialClue(title="Quiet Circle", content="They gather again.", clue_type=ClueType.SOCIAL)
    repository.register_game_clues("g", [clue])
    loaded = repository.load_clue(clue.id)
    assert isinstance(loaded, SocialClue)
    assert repository.game_clue_ids("g") == [clue.id]


def test_register_is_idempotent_per_id(repository):
    clue = make_clue()
    repository.register_game_clues("g", [clue])
    repository.register_game_clues("g", [clue])
    assert repository.game_clue_ids("g") == [clue.id]


def test_empty_schedule_deletes_key(repository):
    entry = ScheduledReveal(clue_id="c", game_id="g", scheduled_at=datetime.now(timezone.utc))
    repository.save_schedule("g", [entry])
    assert [e.clue_id for e in repository.load_schedule("g")] == ["c"]
    repository.save_schedule("g", [])
    assert repository.load_schedule("g") == []


def test_profiles_invalidate(repository):
    repository.save_profile("alice", {"skill": 0.5})
    assert repository.load_profile("alice") == {"skill": 0.5}
    repository.invalidate_profile("alice")
    assert repository.load_profile("alice") is None


def test_missing_records_are_none(repository):
    assert repository.load_clue("nope") is None
    assert repository.load_game_state("nope") is None
    assert repository.load_reveals("nope") == []
