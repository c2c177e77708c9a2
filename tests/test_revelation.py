"""Reveal scheduling, finalisation, chains, and the automatic pass."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from clueflow.config import RevelationTuning
from clueflow.domain.enums import (
    Alignment,
    ClueState,
    ClueType,
    ConditionType,
    Reliability,
    RevealMethod,
    RevealTrigger,
    StrategicValue,
)
from clueflow.domain.errors import (
    AlreadyRevealedError,
    ClueExpiredError,
    NotFoundError,
    PreconditionError,
    StorageError,
)
from clueflow.domain.models import NarrativeClue, RedHerringClue, RevealCondition, round_condition
from clueflow.generation.content import FailingGenerator
from clueflow.revelation.conditions import ConditionEvaluator
from clueflow.revelation.graph import ClueGraph
from clueflow.revelation.manager import RevelationManager, game_tension, reveal_priority
from clueflow.revelation.narrative import TEMPLATES, RevealNarrator, strategic_value
from clueflow.util.locks import LockRegistry
from clueflow.util.rng import Rng

from conftest import MAFIOSO, VILLAGER, make_clue, make_player, make_state


@pytest.fixture
def manager(repository):
    return RevelationManager(
        repository,
        ConditionEvaluator(Rng(1)),
        RevealNarrator(FailingGenerator(), Rng(2)),
        Rng(4),
    )


def register(repository, game_id, *clues):
    repository.register_game_clues(game_id, list(clues))
    return clues


# =============================================================================
# PRIORITY AND SCHEDULE
# =============================================================================

def test_reveal_priority_rules():
    plain = make_clue(information_value=5)
    valuable = make_clue(information_value=9)
    herring = make_clue(clue_type=ClueType.RED_HERRING, information_value=2)
    restrictive = [RevealCondition(type=ConditionType.PLAYER_ELIMINATED, condition="eliminated >= 1")]
    assert reveal_priority(plain, []) == 5
    assert reveal_priority(valuable, []) == 12
    assert reveal_priority(plain, restrictive) == 7
    assert reveal_priority(herring, []) == 1


def test_schedule_orders_by_priority(manager, repository, game_state):
    low, high, mid = register(
        repository,
        game_state.id,
        make_clue(information_value=2),
        make_clue(information_value=9),
        make_clue(information_value=5),
    )
    for clue in (low, high, mid):
        manager.schedule_reveal(clue, game_state.id)
    ordered = [entry.clue_id for entry in manager.schedule.entries(game_state.id)]
    assert ordered == [high.id, mid.id, low.id]


def test_rescheduling_replaces_entry(manager, repository, game_state):
    (clue,) = register(repository, game_state.id, make_clue())
    manager.schedule_reveal(clue, game_state.id, [round_condition(2)])
    manager.schedule_reveal(clue, game_state.id, [round_condition(5)])
    entries = manager.schedule.entries(game_state.id)
    assert len(entries) == 1
    assert entries[0].conditions[0].condition == "round >= 5"


def test_unschedule(manager, repository, game_state):
    (clue,) = register(repository, game_state.id, make_clue())
    manager.schedule_reveal(clue, game_state.id)
    assert manager.unschedule(clue.id, game_state.id)
    assert not manager.unschedule(clue.id, game_state.id)
    assert manager.schedule.entries(game_state.id) == []


def test_schedule_registers_unknown_clue(manager, repository, game_state):
    clue = make_clue()
    manager.schedule_reveal(clue, game_state.id)
    assert clue.id in repository.game_clue_ids(game_state.id)


def test_cannot_schedule_finished_clues(manager, repository, game_state):
    revealed, expired = register(repository, game_state.id, make_clue(), make_clue())
    manager.reveal_clue(revealed.id, game_state.id, state=game_state)
    expired.expire()
    repository.save_clue(expired)
    with pytest.raises(AlreadyRevealedError):
        manager.schedule_reveal(revealed, game_state.id)
    with pytest.raises(ClueExpiredError):
        manager.schedule_reveal(expired, game_state.id)


# =============================================================================
# REVEAL
# =============================================================================

def test_reveal_is_idempotent(manager, repository, game_state):
    (clue,) = register(repository, game_state.id, make_clue())
    manager.reveal_clue(clue.id, game_state.id, state=game_state)
    with pytest.raises(AlreadyRevealedError):
        manager.reveal_clue(clue.id, game_state.id, state=game_state)
    assert len(manager.reveals_for(game_state.id)) == 1
    assert repository.load_clue(clue.id).state is ClueState.REVEALED


def test_concurrent_reveals_produce_one_record(manager, repository, game_state):
    (clue,) = register(repository, game_state.id, make_clue())

    def attempt(_):
        try:
            manager.reveal_clue(clue.id, game_state.id, state=game_state)
        except AlreadyRevealedError:
            return False
        return True

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(attempt, range(16)))
    assert outcomes.count(True) == 1
    assert len(manager.reveals_for(game_state.id)) == 1


def test_failed_reveal_log_leaves_clue_unrevealed(manager, repository, game_state, monkeypatch):
    (clue,) = register(repository, game_state.id, make_clue())

    def refuse(reveal):
        raise StorageError("log unavailable", game_id=reveal.game_id)

    monkeypatch.setattr(repository, "append_reveal", refuse)
    with pytest.raises(StorageError):
        manager.reveal_clue(clue.id, game_state.id, state=game_state)
    assert repository.load_clue(clue.id).state is ClueState.UNREVEALED

    monkeypatch.undo()
    manager.reveal_clue(clue.id, game_state.id, state=game_state)
    assert len(manager.reveals_for(game_state.id)) == 1


def test_public_reveal_uses_template_when_generator_offline(manager, repository, game_state):
    (clue,) = register(repository, game_state.id, make_clue())
    reveal = manager.reveal_clue(clue.id, game_state.id, state=game_state)
    assert reveal.audience.scope == "all"
    assert reveal.method is RevealMethod.AUTOMATIC
    assert reveal.trigger is RevealTrigger.AUTOMATIC
    templates = [t.format(content=clue.content) for t in TEMPLATES[RevealTrigger.AUTOMATIC]]
    assert reveal.narrative_text in templates


def test_triggered_reveal_goes_to_investigator(manager, repository, game_state):
    (clue,) = register(repository, game_state.id, make_clue(reveal_conditions=[round_condition(9)]))
    reveal = manager.reveal_clue(clue.id, game_state.id, triggered_by="alice", state=game_state)
    assert reveal.audience.player_ids == ["alice"]
    assert reveal.method is RevealMethod.INVESTIGATION
    assert repository.load_clue(clue.id).revealed_by == "alice"


def test_unmet_conditions_block_untriggered_reveal(manager, repository, game_state):
    (clue,) = register(repository, game_state.id, make_clue(reveal_conditions=[round_condition(9)]))
    with pytest.raises(PreconditionError):
        manager.reveal_clue(clue.id, game_state.id, state=game_state)
    assert repository.load_clue(clue.id).is_pending


def test_reveal_unknown_ids(manager, repository, game_state):
    with pytest.raises(NotFoundError):
        manager.reveal_clue("missing", game_state.id, state=game_state)
    (clue,) = register(repository, game_state.id, make_clue())
    with pytest.raises(NotFoundError):
        manager.reveal_clue(clue.id, "unknown-game")


def test_reveal_uses_observed_snapshot(manager, repository, game_state):
    (clue,) = register(repository, game_state.id, make_clue())
    manager.observe(game_state)
    reveal = manager.reveal_clue(clue.id, game_state.id)
    assert reveal.game_id == game_state.id


def test_snapshot_from_other_game_rejected(manager, repository, game_state):
    (clue,) = register(repository, "other", make_clue())
    with pytest.raises(PreconditionError):
        manager.reveal_clue(clue.id, "other", state=game_state)


def test_impact_for_red_herring_targets_misdirection(manager, repository, game_state):
    herring = RedHerringClue(
        title="False Lead",
        content="A dropped token seems to accuse the wrong player.",
        clue_type=ClueType.RED_HERRING,
        reliability=Reliability.MISLEADING,
        misdirection_level=5,
        misdirection_target="carol",
    )
    register(repository, game_state.id, herring)
    reveal = manager.reveal_clue(herring.id, game_state.id, state=game_state)
    # 5 * 0.12 scaled by -0.5 for misleading clues
    assert reveal.impact.suspicion_changes == {"carol": pytest.approx(-0.3)}


def test_strategic_value_thresholds(game_state):
    four_left = game_state.model_copy(update={"alive_players": ["alice", "bob", "erin", "frank"]})
    assert strategic_value(make_clue(information_value=9), four_left) is StrategicValue.GAME_CHANGING
    assert strategic_value(make_clue(information_value=9), game_state) is StrategicValue.SIGNIFICANT
    assert strategic_value(make_clue(information_value=5), game_state) is StrategicValue.MODERATE
    assert strategic_value(make_clue(information_value=3), game_state) is StrategicValue.MINOR
    assert strategic_value(make_clue(information_value=1), game_state) is StrategicValue.NEGLIGIBLE


# =============================================================================
# CHAINS AND FOLLOW-UPS
# =============================================================================

def test_reveal_chains_complementary_clue(manager, repository, game_state):
    behavioral = make_clue(clue_type=ClueType.BEHAVIORAL, reveal_conditions=[round_condition(9)])
    unrelated = make_clue(clue_type=ClueType.ROLE_HINT)
    hint = make_clue(related_clues=[behavioral.id, unrelated.id])
    register(repository, game_state.id, hint, behavioral, unrelated)
    state = game_state.model_copy(update={"round": 3})

    manager.reveal_clue(hint.id, state.id, state=state)

    entries = {entry.clue_id: entry for entry in manager.schedule.entries(state.id)}
    assert set(entries) == {behavioral.id}
    entry = entries[behavioral.id]
    assert entry.source_clue_id == hint.id
    assert entry.conditions[0].condition == "round >= 3"
    assert entry.conditions[0].probability == pytest.approx(0.8)


def test_chain_skips_revealed_neighbours(manager, repository, game_state):
    behavioral = make_clue(clue_type=ClueType.BEHAVIORAL)
    hint = make_clue(related_clues=[behavioral.id])
    register(repository, game_state.id, hint, behavioral)
    manager.reveal_clue(behavioral.id, game_state.id, state=game_state)
    manager.reveal_clue(hint.id, game_state.id, state=game_state)
    assert manager.schedule.entries(game_state.id) == []


def test_chain_traversal_stops_on_cycles():
    first = make_clue(clue_type=ClueType.ROLE_HINT)
    second = make_clue(clue_type=ClueType.BEHAVIORAL, related_clues=[first.id])
    first = first.with_changes(related_clues=[second.id])
    graph = ClueGraph.from_clues([first, second])
    tuning = RevelationTuning()
    assert graph.chain_targets(first.id, 5, tuning.is_chain_pair) == [second.id]
    assert graph.chain_targets("missing", 5, tuning.is_chain_pair) == []


def test_game_changing_reveal_queues_follow_up(manager, repository, players):
    state = make_state(players, alive_players=["alice", "bob", "erin", "frank"],
                       eliminated_players=["carol", "dave"], round=4)
    decisive = make_clue(information_value=9)
    atmosphere = make_clue(clue_type=ClueType.ENVIRONMENTAL, information_value=3)
    register(repository, state.id, decisive, atmosphere)

    reveal = manager.reveal_clue(decisive.id, state.id, state=state)

    assert reveal.impact.strategic_value is StrategicValue.GAME_CHANGING
    entries = manager.schedule.entries(state.id)
    assert [entry.clue_id for entry in entries] == [atmosphere.id]
    assert entries[0].conditions[0].condition == "round >= 5"
    assert entries[0].conditions[0].probability == pytest.approx(0.6)


# =============================================================================
# AUTOMATIC PASS
# =============================================================================

def test_automatic_pass_reveals_when_conditions_hold(manager, repository, game_state):
    (clue,) = register(repository, game_state.id, make_clue())
    manager.schedule_reveal(clue, game_state.id, [round_condition(2, probability=1.0)])

    assert manager.process_automatic_reveals(game_state) == []
    later = game_state.model_copy(update={"round": 2})
    reveals = manager.process_automatic_reveals(later)

    assert [reveal.clue_id for reveal in reveals] == [clue.id]
    assert manager.schedule.entries(game_state.id) == []


def test_automatic_pass_drops_stale_entries(manager, repository, game_state):
    (clue,) = register(repository, game_state.id, make_clue())
    manager.schedule_reveal(clue, game_state.id, [round_condition(9)])
    repository.delete_clue(clue.id)
    assert manager.process_automatic_reveals(game_state) == []
    assert manager.schedule.entries(game_state.id) == []


def test_no_atmospheric_reveal_below_tension_threshold(repository):
    roster = [make_player(f"p{i}", VILLAGER) for i in range(6)]
    roster += [make_player("m1", MAFIOSO), make_player("m2", MAFIOSO)]
    state = make_state(
        roster,
        round=5,
        alive_players=[p.id for p in roster[2:]],
        eliminated_players=["p0", "p1"],
    )
    minted = []

    def narrative_source(snapshot, count):
        clue = NarrativeClue(title="Omen", content="Candles gutter all at once.", clue_type=ClueType.NARRATIVE)
        minted.append(clue)
        return [clue]

    tuning = RevelationTuning(atmospheric_probability=1.0)
    manager = RevelationManager(
        repository,
        ConditionEvaluator(Rng(1), tuning),
        RevealNarrator(FailingGenerator(), Rng(2)),
        Rng(4),
        tuning=tuning,
        narrative_source=narrative_source,
    )

    assert game_tension(state) == pytest.approx(0.4)
    for _ in range(10):
        assert manager.process_automatic_reveals(state) == []
    assert minted == []


def test_atmospheric_reveal_above_threshold(repository, players):
    state = make_state(
        players,
        round=8,
        alive_players=["alice", "erin"],
        eliminated_players=["bob", "carol", "dave", "frank"],
    )
    tuning = RevelationTuning(atmospheric_probability=1.0)
    manager = RevelationManager(
        repository,
        ConditionEvaluator(Rng(1), tuning),
        RevealNarrator(FailingGenerator(), Rng(2)),
        Rng(4),
        tuning=tuning,
        narrative_source=lambda snapshot, count: [
            NarrativeClue(title="Omen", content="Candles gutter all at once.", clue_type=ClueType.NARRATIVE)
        ],
    )
    reveals = manager.process_automatic_reveals(state)
    assert len(reveals) == 1
    assert reveals[0].trigger is RevealTrigger.ATMOSPHERIC


# =============================================================================
# EXPIRY
# =============================================================================

def test_expire_game_expires_pending_only(manager, repository, game_state):
    shown, hidden, queued = register(repository, game_state.id, make_clue(), make_clue(), make_clue())
    manager.reveal_clue(shown.id, game_state.id, state=game_state)
    manager.schedule_reveal(queued, game_state.id, [round_condition(9)])

    assert manager.expire_game(game_state.id) == 2

    assert repository.load_clue(shown.id).state is ClueState.REVEALED
    assert repository.load_clue(hidden.id).state is ClueState.EXPIRED
    assert manager.schedule.entries(game_state.id) == []
    with pytest.raises(AlreadyRevealedError):
        manager.reveal_clue(shown.id, game_state.id, state=game_state)
    with pytest.raises(ClueExpiredError):
        manager.reveal_clue(hidden.id, game_state.id, triggered_by="alice", state=game_state)


def test_expiry_releases_per_clue_locks(manager, repository, game_state):
    clues = register(repository, game_state.id, *(make_clue() for _ in range(5)))
    for clue in clues[:2]:
        manager.reveal_clue(clue.id, game_state.id, state=game_state)
    manager.schedule_reveal(clues[2], game_state.id, [round_condition(9)])
    manager.expire_game(game_state.id)
    assert len(manager._clue_locks) == 0
    assert len(manager.schedule._locks) == 0


def test_lock_registry_shares_lock_while_held():
    registry = LockRegistry(threading.RLock)
    with registry.hold("game-1") as outer:
        with registry.hold("game-1") as inner:
            assert inner is outer
            assert len(registry) == 1
        assert len(registry) == 1
    assert len(registry) == 0


def test_town_eliminations_drive_death_reveals(manager, repository, game_state):
    condition = RevealCondition(type=ConditionType.PLAYER_ELIMINATED, condition="town_eliminated >= 1")
    (clue,) = register(repository, game_state.id, make_clue(reveal_conditions=[condition]))
    manager.schedule_reveal(clue, game_state.id)
    after = game_state.model_copy(
        update={
            "alive_players": [p for p in game_state.alive_players if p != "carol"],
            "eliminated_players": ["carol"],
        }
    )
    assert after.eliminated_with(Alignment.TOWN) == 1
    reveals = manager.process_automatic_reveals(after)
    assert [reveal.method for reveal in reveals] == [RevealMethod.DEATH]
