"""Shared enums for clues, reveals, and game snapshots."""

from __future__ import annotations

from enum import StrEnum


class ClueType(StrEnum):
    ROLE_HINT = "role_hint"
    ALIGNMENT_HINT = "alignment_hint"
    ACTION_EVIDENCE = "action_evidence"
    RELATIONSHIP = "relationship"
    BEHAVIORAL = "behavioral"
    ENVIRONMENTAL = "environmental"
    RED_HERRING = "red_herring"
    DIRECT_EVIDENCE = "direct_evidence"
    INVESTIGATION_RESULT = "investigation_result"
    NARRATIVE = "narrative"
    SOCIAL = "social"


BASE_TYPES = (
    ClueType.ROLE_HINT,
    ClueType.ALIGNMENT_HINT,
    ClueType.ACTION_EVIDENCE,
    ClueType.RELATIONSHIP,
    ClueType.BEHAVIORAL,
    ClueType.ENVIRONMENTAL,
    ClueType.RED_HERRING,
)

# Specialised variants fold onto a base family; every heuristic keys on the family.
_FAMILY = {
    ClueType.ROLE_HINT: ClueType.ROLE_HINT,
    ClueType.ALIGNMENT_HINT: ClueType.ALIGNMENT_HINT,
    ClueType.ACTION_EVIDENCE: ClueType.ACTION_EVIDENCE,
    ClueType.RELATIONSHIP: ClueType.RELATIONSHIP,
    ClueType.BEHAVIORAL: ClueType.BEHAVIORAL,
    ClueType.ENVIRONMENTAL: ClueType.ENVIRONMENTAL,
    ClueType.RED_HERRING: ClueType.RED_HERRING,
    ClueType.DIRECT_EVIDENCE: ClueType.ACTION_EVIDENCE,
    ClueType.INVESTIGATION_RESULT: ClueType.ACTION_EVIDENCE,
    ClueType.NARRATIVE: ClueType.ENVIRONMENTAL,
    ClueType.SOCIAL: ClueType.RELATIONSHIP,
}


def clue_family(clue_type: ClueType) -> ClueType:
    try:
        return _FAMILY[clue_type]
    except KeyError:
        raise ValueError(f"Clue type without a family: {clue_type}") from None


class Reliability(StrEnum):
    RELIABLE = "reliable"
    UNRELIABLE = "unreliable"
    MISLEADING = "misleading"


class Verifiability(StrEnum):
    EASILY_VERIFIED = "easily_verified"
    HARD_TO_VERIFY = "hard_to_verify"
    UNVERIFIABLE = "unverifiable"


class Difficulty(StrEnum):
    TRIVIAL = "trivial"
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"

    @property
    def tier(self) -> int:
        return DIFFICULTY_ORDER.index(self) + 1

    def shift(self, steps: int) -> "Difficulty":
        index = DIFFICULTY_ORDER.index(self) + steps
        index = max(0, min(len(DIFFICULTY_ORDER) - 1, index))
        return DIFFICULTY_ORDER[index]


DIFFICULTY_ORDER = (
    Difficulty.TRIVIAL,
    Difficulty.EASY,
    Difficulty.MEDIUM,
    Difficulty.HARD,
    Difficulty.EXPERT,
)


class ClueState(StrEnum):
    UNREVEALED = "unrevealed"
    REVEALED = "revealed"
    EXPIRED = "expired"


class ConditionType(StrEnum):
    ROUND_NUMBER = "round_number"
    PLAYER_ELIMINATED = "player_eliminated"
    ABILITY_USED = "ability_used"
    VOTE_PATTERN = "vote_pattern"
    RANDOM = "random"


class RevealMethod(StrEnum):
    INVESTIGATION = "investigation"
    AUTOMATIC = "automatic"
    DEATH = "death"
    VOTE_PATTERN = "vote_pattern"
    SPECIAL_ABILITY = "special_ability"


class RevealTrigger(StrEnum):
    INVESTIGATION = "investigation"
    AUTOMATIC = "automatic"
    ATMOSPHERIC = "atmospheric"


class StrategicValue(StrEnum):
    GAME_CHANGING = "game_changing"
    SIGNIFICANT = "significant"
    MODERATE = "moderate"
    MINOR = "minor"
    NEGLIGIBLE = "negligible"


class InvestigationMethod(StrEnum):
    DIRECT_QUESTIONING = "direct_questioning"
    BEHAVIORAL_OBSERVATION = "behavioral_observation"
    VOTING_PATTERN_ANALYSIS = "voting_pattern_analysis"
    PSYCHOLOGICAL_PROFILING = "psychological_profiling"
    COMMUNICATION_MONITORING = "communication_monitoring"
    FORENSIC_ANALYSIS = "forensic_analysis"
    ALLIANCE_ANALYSIS = "alliance_analysis"
    ROLE_ABILITY_USAGE = "role_ability_usage"


class FindingType(StrEnum):
    ROLE_INFORMATION = "role_information"
    ALIGNMENT_HINT = "alignment_hint"
    ABILITY_EVIDENCE = "ability_evidence"
    BEHAVIORAL_PATTERN = "behavioral_pattern"
    CONNECTION_REVEALED = "connection_revealed"


class Severity(StrEnum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


class CheckKind(StrEnum):
    LOGICAL = "logical"
    TEMPORAL = "temporal"
    CHARACTER = "character"
    THEMATIC = "thematic"
    MECHANICAL = "mechanical"


class AdjustmentType(StrEnum):
    INFORMATION_VALUE = "information_value"
    RELIABILITY = "reliability"
    DIFFICULTY = "difficulty"
    REVEAL_CONDITIONS = "reveal_conditions"
    MISDIRECTION = "misdirection_level"
    REMOVE = "remove"


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}[self]


class Alignment(StrEnum):
    TOWN = "town"
    MAFIA = "mafia"
    NEUTRAL = "neutral"
    SURVIVOR = "survivor"


class RoleType(StrEnum):
    INVESTIGATIVE = "investigative"
    KILLING = "killing"
    PROTECTIVE = "protective"
    SUPPORT = "support"
    POWER = "power"
    VANILLA = "vanilla"


class AbilityType(StrEnum):
    INVESTIGATE = "investigate"
    KILL = "kill"
    PROTECT = "protect"
    BLOCK = "block"
    REDIRECT = "redirect"
    COMMUNICATE = "communicate"
    VOTE_MODIFY = "vote_modify"
    INFORMATION = "information"
    PASSIVE = "passive"


class GamePhase(StrEnum):
    ROLE_ASSIGNMENT = "role_assignment"
    DAY_DISCUSSION = "day_discussion"
    DAY_VOTING = "day_voting"
    NIGHT_ACTIONS = "night_actions"
    GAME_OVER = "game_over"


class PlayerStatus(StrEnum):
    ALIVE = "alive"
    ELIMINATED = "eliminated"
    PROTECTED = "protected"
    BLOCKED = "blocked"
    SUSPICIOUS = "suspicious"


class GameEventKind(StrEnum):
    ELIMINATION = "elimination"
    ABILITY_USED = "ability_used"
    CLUE_REVEALED = "clue_revealed"
    PHASE_CHANGE = "phase_change"
    VICTORY = "victory"


class EvidenceKind(StrEnum):
    PHYSICAL = "physical"
    DIGITAL = "digital"
    TESTIMONIAL = "testimonial"
    CIRCUMSTANTIAL = "circumstantial"
    FORENSIC = "forensic"


class EvidenceStrength(StrEnum):
    CONCLUSIVE = "conclusive"
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"
    CIRCUMSTANTIAL = "circumstantial"


class HerringType(StrEnum):
    FALSE_EVIDENCE = "false_evidence"
    MISLEADING_BEHAVIOR = "misleading_behavior"
    PLANTED_INFORMATION = "planted_information"
    COINCIDENCE = "coincidence"
    MISINTERPRETATION = "misinterpretation"


class BehaviorType(StrEnum):
    VOTING = "voting"
    COMMUNICATION = "communication"
    REACTION = "reaction"
    TIMING = "timing"
    ALLIANCE = "alliance"
    DEFENSIVE = "defensive"


class SocialType(StrEnum):
    ALLIANCE = "alliance"
    CONFLICT = "conflict"
    INFLUENCE = "influence"
    ISOLATION = "isolation"
    LEADERSHIP = "leadership"
    FOLLOWERSHIP = "followership"
