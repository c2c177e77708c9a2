"""Coherence scoring, consistency checks, balance, and reveal timing."""

from datetime import datetime, timezone

import pytest

from clueflow.config import BalanceTolerances, InformationFlowConstraints, NarrativeCoherenceRules
from clueflow.domain.enums import (
    AdjustmentType,
    CheckKind,
    ClueType,
    ConditionType,
    Difficulty,
    EvidenceStrength,
    GamePhase,
    Priority,
    Reliability,
    Severity,
    Verifiability,
)
from clueflow.domain.game import Communication
from clueflow.domain.models import ClueGameContext, DirectEvidenceClue, round_condition
from clueflow.generation.content import FailingGenerator
from clueflow.generation.specialized import SpecializedClueFactory, retype_as_red_herring
from clueflow.util.rng import Rng
from clueflow.validation.balance import (
    balance_clues_for_players,
    collective_advantage,
    enforce_balance,
    max_advantage,
)
from clueflow.validation.coherence import (
    ValidationContext,
    coherence_score,
    consistency_checks,
    earliest_round,
    is_contradictory,
    thematic_alignment,
)
from clueflow.validation.flow import calculate_clue_relevance, optimize_information_flow
from clueflow.validation.validator import ClueAdjustment, ClueValidator, apply_adjustments

from conftest import ROLES, make_clue

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def validator():
    return ClueValidator()


@pytest.fixture
def context(game_state):
    return ValidationContext.from_state(game_state)


def hint(**fields):
    data = {
        "reliability": Reliability.RELIABLE,
        "verifiability": Verifiability.EASILY_VERIFIED,
        "difficulty": Difficulty.EASY,
        "reveal_conditions": [round_condition(2)],
    }
    data.update(fields)
    return make_clue(**data)


def herring(target, misdirection=8, **fields):
    return make_clue(
        clue_type=ClueType.RED_HERRING,
        reliability=Reliability.MISLEADING,
        information_value=2,
        misdirection_level=misdirection,
        target_players=[target],
        reveal_conditions=[round_condition(2)],
        **fields,
    )


# =============================================================================
# COHERENCE
# =============================================================================

def test_well_formed_clue_scores_full():
    assert coherence_score(hint(information_value=5)) == pytest.approx(1.0)


def test_misleading_high_value_without_conditions():
    clue = make_clue(
        information_value=9,
        reliability=Reliability.MISLEADING,
        verifiability=Verifiability.HARD_TO_VERIFY,
        difficulty=Difficulty.MEDIUM,
    )
    # misleading-high 0.5, difficulty gap 0.6, unconditioned high value 0.5
    assert coherence_score(clue) == pytest.approx(0.15)


def test_easily_verified_unreliable_penalty():
    clue = hint(reliability=Reliability.UNRELIABLE, difficulty=Difficulty.MEDIUM)
    assert coherence_score(clue) == pytest.approx(0.3 * 0.9)


def test_misdirection_outside_herrings_penalised():
    assert coherence_score(hint(misdirection_level=8)) == pytest.approx(0.4)
    assert coherence_score(hint(misdirection_level=7)) == pytest.approx(1.0)


def test_strong_herring_penalised():
    clue = make_clue(
        clue_type=ClueType.RED_HERRING,
        reliability=Reliability.MISLEADING,
        verifiability=Verifiability.HARD_TO_VERIFY,
        difficulty=Difficulty.HARD,
        information_value=4,
        reveal_conditions=[round_condition(2)],
    )
    assert coherence_score(clue) == pytest.approx(0.6 * 0.94)


def test_thematic_alignment(game_state):
    on_theme = hint(content="A knight was seen leaving the great hall at dawn.")
    off_theme = hint(content="Someone left early.", context=ClueGameContext(scenario="elsewhere"))
    assert thematic_alignment(on_theme, game_state.scenario) == pytest.approx(1.0)
    assert thematic_alignment(off_theme, game_state.scenario) == pytest.approx(0.6 * 0.7)


# =============================================================================
# CONSISTENCY
# =============================================================================

def test_high_value_with_misdirection_is_major(context):
    clue = hint(information_value=9, misdirection_level=6)
    (issue,) = consistency_checks(clue, context, NarrativeCoherenceRules())
    assert issue.kind is CheckKind.LOGICAL
    assert issue.severity is Severity.MAJOR
    assert issue.is_hard


def test_future_round_is_temporal_issue(validator, context):
    clue = hint(context=ClueGameContext(round=5))
    result = validator.validate_clue(clue, context)
    (issue,) = result.consistency_issues
    assert issue.kind is CheckKind.TEMPORAL
    assert not result.valid
    (adjustment,) = [a for a in result.adjustments() if a.type is AdjustmentType.REVEAL_CONDITIONS]
    assert adjustment.value == [round_condition(1, probability=0.8)]


def test_contradiction_requires_shared_target():
    guilt = hint(information_value=8, target_players=["erin"])
    assert is_contradictory(guilt, herring("erin"))
    assert is_contradictory(herring("erin"), guilt)
    assert not is_contradictory(guilt, herring("bob"))
    assert not is_contradictory(guilt, herring("erin", misdirection=7))


def test_contradiction_allowed_when_configured(context):
    guilt = hint(information_value=8, target_players=["erin"])
    context.other_clues = [herring("erin")]
    strict = consistency_checks(guilt, context, NarrativeCoherenceRules())
    lenient = consistency_checks(guilt, context, NarrativeCoherenceRules(allow_contradictory_clues=True))
    assert [issue.severity for issue in strict] == [Severity.CRITICAL]
    assert lenient == []


def test_redundant_clue_is_minor(context):
    first = hint(target_players=["bob"], information_value=5)
    second = hint(target_players=["bob"], information_value=6)
    context.other_clues = [first, second]
    (issue,) = consistency_checks(first, context, NarrativeCoherenceRules())
    assert issue.severity is Severity.MINOR
    assert not issue.is_hard


# =============================================================================
# CLUE SETS
# =============================================================================

def test_set_removes_misdirection_side_of_contradiction(validator, game_state):
    guilt = hint(information_value=8, target_players=["erin"], content="A knight's blade in the great hall.")
    decoy = herring("erin")
    analysis = validator.validate_clue_set([guilt, decoy], game_state.scenario, ROLES, game_state)
    removals = [a for a in analysis.adjustments if a.type is AdjustmentType.REMOVE]
    assert [a.clue_id for a in removals] == [decoy.id]
    assert removals[0].priority is Priority.HIGH


def test_missing_red_herrings_reported(validator, game_state):
    clues = [hint(information_value=4), hint(information_value=5)]
    analysis = validator.validate_clue_set(clues, game_state.scenario, ROLES, game_state)
    assert any("below the minimum" in issue for issue in analysis.issues)


def test_too_many_red_herrings_drops_weakest(validator, game_state):
    weak = herring("bob", misdirection=5)
    strong = herring("carol", misdirection=9)
    clues = [hint(information_value=4), weak, strong]
    analysis = validator.validate_clue_set(clues, game_state.scenario, ROLES, game_state)
    removals = [a.clue_id for a in analysis.adjustments if a.type is AdjustmentType.REMOVE]
    assert removals == [weak.id]


def test_adjustments_unique_per_clue_and_type(validator, game_state):
    clue = make_clue(
        information_value=10,
        reliability=Reliability.MISLEADING,
        misdirection_level=6,
        verifiability=Verifiability.HARD_TO_VERIFY,
    )
    analysis = validator.validate_clue_set([clue], game_state.scenario, ROLES, game_state)
    keys = [(a.clue_id, a.type) for a in analysis.adjustments]
    assert len(keys) == len(set(keys))
    first = next(a for a in analysis.adjustments if a.type is AdjustmentType.INFORMATION_VALUE)
    assert first.priority is Priority.HIGH


@pytest.mark.parametrize(
    "clue, kind",
    [
        (herring("bob", misdirection=9), AdjustmentType.MISDIRECTION),
        (hint(information_value=9), AdjustmentType.INFORMATION_VALUE),
    ],
)
def test_lopsided_clue_adjusted_back_within_limit(validator, context, clue, kind):
    result = validator.validate_clue(clue, context)
    assert not result.balance_impact.acceptable
    adjustment = next(a for a in result.adjustments() if a.type is kind)
    assert adjustment.value == 6

    fixed = apply_adjustments([clue], [adjustment])[0]
    assert max_advantage(validator.validate_clue(fixed, context).balance_impact.information_advantage) <= 0.3
    assert validator.validate_clue(fixed, context).balance_impact.acceptable


def test_hint_removed_when_no_value_fits(validator, context):
    tight = {"balance_tolerances": {"max_information_advantage": 0.01}}
    result = validator.validate_clue(hint(information_value=9), context, tight)
    assert AdjustmentType.REMOVE in {a.type for a in result.adjustments()}


def test_apply_adjustments_skips_revealed_and_unknown():
    kept = hint(information_value=6)
    dropped = hint()
    shown = hint(information_value=6)
    shown.mark_revealed(NOW)
    adjustments = [
        ClueAdjustment(kept.id, AdjustmentType.INFORMATION_VALUE, "lower", Priority.HIGH, 3),
        ClueAdjustment(dropped.id, AdjustmentType.REMOVE, "drop", Priority.HIGH),
        ClueAdjustment(shown.id, AdjustmentType.INFORMATION_VALUE, "lower", Priority.HIGH, 1),
        ClueAdjustment("ghost", AdjustmentType.REMOVE, "drop", Priority.LOW),
    ]
    result = apply_adjustments([kept, dropped, shown], adjustments)
    assert [clue.id for clue in result] == [kept.id, shown.id]
    assert result[0].information_value == 3
    assert result[1] is shown


# =============================================================================
# RED HERRINGS
# =============================================================================

def test_retyped_conclusive_evidence_against_mafia_rejected(validator, game_state):
    evidence = DirectEvidenceClue(
        title="Hard Evidence",
        content="Erin's signet ring was found beside the body.",
        clue_type=ClueType.DIRECT_EVIDENCE,
        information_value=9,
        evidence_strength=EvidenceStrength.CONCLUSIVE,
        points_to_player="erin",
        target_players=["erin"],
        verification_method="Laboratory analysis",
    )
    verdict = validator.validate_red_herring(retype_as_red_herring(evidence), game_state.players)
    assert not verdict.valid
    assert "Red herring should not target actual mafia members" in verdict.issues
    assert "Conclusive evidence cannot be recast as misdirection" in verdict.issues


def test_generated_red_herring_passes(validator, game_state):
    factory = SpecializedClueFactory(FailingGenerator(), Rng(12))
    _, plausible = factory.create_red_herrings(game_state)
    verdict = validator.validate_red_herring(plausible, game_state.players)
    assert verdict.valid, verdict.issues


def test_overconvincing_red_herring_flagged(validator, game_state):
    factory = SpecializedClueFactory(FailingGenerator(), Rng(12))
    convincing, _ = factory.create_red_herrings(game_state)
    verdict = validator.validate_red_herring(convincing, game_state.players)
    assert verdict.issues == ["Red herring may be too convincing"]


# =============================================================================
# BALANCE
# =============================================================================

def test_enforce_balance_brings_set_within_tolerance():
    tolerances = BalanceTolerances()
    clues = [hint(information_value=10) for _ in range(3)]
    assert max_advantage(collective_advantage(clues)) == pytest.approx(0.5)
    balanced = enforce_balance(clues, tolerances)
    assert len(balanced) == 3
    assert max_advantage(collective_advantage(balanced)) <= tolerances.max_information_advantage


def test_enforce_balance_leaves_revealed_clues():
    shown = hint(information_value=10)
    shown.mark_revealed(NOW)
    pending = hint(information_value=10)
    balanced = enforce_balance([shown, pending], BalanceTolerances())
    assert balanced[0] is shown
    assert balanced[0].information_value == 10
    assert balanced[1].information_value < 10


def test_enforce_balance_gives_up_on_revealed_only_set():
    shown = hint(information_value=10)
    shown.mark_revealed(NOW)
    assert enforce_balance([shown], BalanceTolerances()) == [shown]


def test_enforce_balance_weakens_herrings():
    decoys = [herring("bob", misdirection=10), herring("carol", misdirection=10)]
    balanced = enforce_balance(decoys, BalanceTolerances())
    assert max_advantage(collective_advantage(balanced)) <= 0.3
    assert all(clue.misdirection_level < 10 for clue in balanced)


def test_skilled_table_gets_harder_clues(players):
    for player in players:
        player.action_history = ["vote"] * 5
        player.communications = [Communication(sender=player.id) for _ in range(5)]
    clue = hint(information_value=5)
    decoy = herring("bob")
    harder = balance_clues_for_players([clue, decoy], players)
    assert harder[0].information_value == 6
    assert harder[0].difficulty is Difficulty.MEDIUM
    assert harder[1].misdirection_level == 6


def test_average_table_unchanged(players):
    clues = [hint(information_value=5)]
    assert balance_clues_for_players(clues, players) == clues


# =============================================================================
# FLOW AND RELEVANCE
# =============================================================================

def test_flow_respects_round_budget():
    constraints = InformationFlowConstraints()
    clues = [hint(information_value=5) for _ in range(4)]
    planned = optimize_information_flow(clues, 8, constraints)
    assert [earliest_round(clue) for clue in planned] == [4, 4, 4, 5]
    assert {clue.id for clue in planned} == {clue.id for clue in clues}


def test_flow_caps_high_value_clues():
    constraints = InformationFlowConstraints(max_information_per_round=100, max_high_value_clues=1)
    clues = [hint(information_value=8) for _ in range(3)]
    rounds = [earliest_round(clue) for clue in optimize_information_flow(clues, 10, constraints)]
    assert rounds == sorted(set(rounds))


def test_flow_conditions_for_evidence():
    evidence = hint(clue_type=ClueType.ACTION_EVIDENCE, information_value=9)
    (planned,) = optimize_information_flow([evidence], 8, InformationFlowConstraints())
    types = [condition.type for condition in planned.reveal_conditions]
    assert types == [ConditionType.ROUND_NUMBER, ConditionType.PLAYER_ELIMINATED, ConditionType.ABILITY_USED]
    assert earliest_round(planned) == 5


def test_flow_never_plans_before_current_round():
    early = hint(clue_type=ClueType.RED_HERRING, information_value=2)
    (planned,) = optimize_information_flow([early], 8, InformationFlowConstraints(), current_round=6)
    assert earliest_round(planned) == 6


def test_relevance_by_phase(game_state):
    clue = hint(information_value=5)
    assert calculate_clue_relevance(clue, game_state) == pytest.approx(0.5)
    seen = game_state.model_copy(update={"revealed_information": [clue.id]})
    assert calculate_clue_relevance(clue, seen) == pytest.approx(0.15)
    evidence = hint(clue_type=ClueType.DIRECT_EVIDENCE, information_value=8)
    voting = game_state.model_copy(update={"phase": GamePhase.DAY_VOTING})
    assert calculate_clue_relevance(evidence, voting) == pytest.approx(1.0)
