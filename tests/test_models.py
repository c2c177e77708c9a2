"""Clue record invariants: clamping, lifecycle, and payload variants."""

from datetime import datetime, timezone

import pytest

from clueflow.domain.enums import BASE_TYPES, ClueState, ClueType, clue_family
from clueflow.domain.errors import AlreadyRevealedError, ClueExpiredError, PreconditionError
from clueflow.domain.models import (
    DirectEvidenceClue,
    RevealCondition,
    clue_from_payload,
    clue_to_payload,
)

from conftest import make_clue

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


# =============================================================================
# CLAMPING
# =============================================================================

def test_numeric_ranges_clamped_on_construction():
    clue = make_clue(information_value=14, misdirection_level=-3)
    assert clue.information_value == 10
    assert clue.misdirection_level == 0


def test_numeric_ranges_clamped_on_assignment():
    clue = make_clue()
    clue.information_value = 0
    clue.misdirection_level = 11
    assert clue.information_value == 1
    assert clue.misdirection_level == 10


def test_condition_probability_clamped():
    assert RevealCondition(type="random", probability=1.7).probability == 1.0
    assert RevealCondition(type="random", probability=-0.2).probability == 0.0


def test_target_lists_are_deduplicated():
    clue = make_clue(target_players=["erin", "erin", "frank"])
    assert clue.target_players == ["erin", "frank"]


# =============================================================================
# LIFECYCLE
# =============================================================================

def test_reveal_records_time_and_actor():
    clue = make_clue()
    clue.mark_revealed(NOW, "alice")
    assert clue.state is ClueState.REVEALED
    assert clue.revealed_at == NOW
    assert clue.revealed_by == "alice"


def test_second_reveal_rejected():
    clue = make_clue()
    clue.mark_revealed(NOW)
    with pytest.raises(AlreadyRevealedError):
        clue.mark_revealed(NOW)


def test_values_frozen_after_reveal():
    clue = make_clue(information_value=6)
    clue.mark_revealed(NOW)
    with pytest.raises(PreconditionError):
        clue.information_value = 2
    with pytest.raises(PreconditionError):
        clue.with_changes(misdirection_level=4)
    assert clue.information_value == 6


def test_lifecycle_fields_not_assignable():
    clue = make_clue()
    with pytest.raises(PreconditionError):
        clue.state = ClueState.REVEALED
    with pytest.raises(PreconditionError):
        clue.with_changes(revealed_by="alice")


def test_expired_is_terminal():
    clue = make_clue()
    clue.expire()
    assert clue.state is ClueState.EXPIRED
    with pytest.raises(ClueExpiredError):
        clue.mark_revealed(NOW)
    clue.expire()
    assert clue.state is ClueState.EXPIRED


def test_expire_leaves_revealed_clue_alone():
    clue = make_clue()
    clue.mark_revealed(NOW)
    clue.expire()
    assert clue.is_revealed


def test_with_changes_keeps_id_and_revalidates():
    clue = make_clue(information_value=4)
    changed = clue.with_changes(information_value=99)
    assert changed.id == clue.id
    assert changed.information_value == 10
    assert clue.information_value == 4


# =============================================================================
# FAMILIES AND PAYLOADS
# =============================================================================

def test_every_type_has_a_base_family():
    for clue_type in ClueType:
        assert clue_family(clue_type) in BASE_TYPES
    assert clue_family(ClueType.DIRECT_EVIDENCE) is ClueType.ACTION_EVIDENCE
    assert clue_family(ClueType.SOCIAL) is ClueType.RELATIONSHIP


def test_payload_keeps_variant_fields():
    clue = DirectEvidenceClue(
        title="Evidence Found",
        content="A torn sleeve caught on the gate.",
        clue_type=ClueType.DIRECT_EVIDENCE,
        points_to_player="erin",
    )
    restored = clue_from_payload(clue_to_payload(clue))
    assert isinstance(restored, DirectEvidenceClue)
    assert restored.points_to_player == "erin"
    assert restored.id == clue.id


def test_unknown_variant_rejected():
    with pytest.raises(ValueError):
        clue_from_payload({"variant": "prophecy", "clue": {}})
