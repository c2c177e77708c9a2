"""Investigation methods: costs, risks, and what each one needs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

from clueflow.domain.enums import InvestigationMethod


@dataclass(frozen=True)
class InvestigationCost:
    action_points: int
    time_slots: int


@dataclass(frozen=True)
class InvestigationRisk:
    exposure_chance: float
    consequences: Tuple[str, ...] = ()
    mitigation: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MethodProfile:
    cost: InvestigationCost
    risk: InvestigationRisk
    expected_reliability: float
    description: str
    requirements: Tuple[str, ...] = field(default_factory=tuple)


PROFILES = {
    InvestigationMethod.DIRECT_QUESTIONING: MethodProfile(
        cost=InvestigationCost(action_points=1, time_slots=1),
        risk=InvestigationRisk(0.3, ("Target becomes suspicious",), ("Use during day phase",)),
        expected_reliability=0.6,
        description="Ask direct questions to gather information",
        requirements=("Target must be alive", "Day phase preferred"),
    ),
    InvestigationMethod.BEHAVIORAL_OBSERVATION: MethodProfile(
        cost=InvestigationCost(action_points=1, time_slots=2),
        risk=InvestigationRisk(0.1, ("Low exposure risk",), ("Passive observation",)),
        expected_reliability=0.7,
        description="Observe target behavior patterns for clues",
        requirements=("At least 2 rounds of history",),
    ),
    InvestigationMethod.VOTING_PATTERN_ANALYSIS: MethodProfile(
        cost=InvestigationCost(action_points=2, time_slots=1),
        risk=InvestigationRisk(0.0),
        expected_reliability=0.8,
        description="Analyze voting history for alignment hints",
        requirements=("Previous voting records required",),
    ),
    InvestigationMethod.PSYCHOLOGICAL_PROFILING: MethodProfile(
        cost=InvestigationCost(action_points=2, time_slots=2),
        risk=InvestigationRisk(0.2, ("Requires expertise",), ("Use investigative role abilities",)),
        expected_reliability=0.5,
        description="Create psychological profile of target",
        requirements=("Investigative role recommended",),
    ),
    InvestigationMethod.COMMUNICATION_MONITORING: MethodProfile(
        cost=InvestigationCost(action_points=1, time_slots=3),
        risk=InvestigationRisk(0.4, ("May be detected",), ("Use during night phase",)),
        expected_reliability=0.6,
        description="Monitor communications for suspicious activity",
        requirements=("Night phase required", "Special ability needed"),
    ),
    InvestigationMethod.FORENSIC_ANALYSIS: MethodProfile(
        cost=InvestigationCost(action_points=3, time_slots=1),
        risk=InvestigationRisk(0.1, ("Requires evidence",), ("Thorough preparation",)),
        expected_reliability=0.9,
        description="Analyze evidence for conclusive proof",
        requirements=("Physical evidence required",),
    ),
    InvestigationMethod.ALLIANCE_ANALYSIS: MethodProfile(
        cost=InvestigationCost(action_points=2, time_slots=2),
        risk=InvestigationRisk(0.2, ("May reveal alliances",), ("Discrete observation",)),
        expected_reliability=0.7,
        description="Study relationships and alliances",
        requirements=("Multiple players data needed",),
    ),
    InvestigationMethod.ROLE_ABILITY_USAGE: MethodProfile(
        cost=InvestigationCost(action_points=1, time_slots=1),
        risk=InvestigationRisk(0.5, ("Reveals investigative role",), ("Use sparingly",)),
        expected_reliability=0.8,
        description="Use role-specific investigation abilities",
        requirements=("Role-specific ability available",),
    ),
}

# First keyword found in the ability name wins.
METHOD_KEYWORDS = (
    ("investigate", InvestigationMethod.DIRECT_QUESTIONING),
    ("observe", InvestigationMethod.BEHAVIORAL_OBSERVATION),
    ("analyze", InvestigationMethod.VOTING_PATTERN_ANALYSIS),
    ("probe", InvestigationMethod.PSYCHOLOGICAL_PROFILING),
    ("track", InvestigationMethod.COMMUNICATION_MONITORING),
    ("examine", InvestigationMethod.FORENSIC_ANALYSIS),
)


def map_ability_to_method(ability_name: str) -> InvestigationMethod:
    name = ability_name.lower()
    for keyword, method in METHOD_KEYWORDS:
        if keyword in name:
            return method
    return InvestigationMethod.DIRECT_QUESTIONING
