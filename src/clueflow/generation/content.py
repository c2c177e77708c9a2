"""Content-generation collaborator: briefs, results, drafts, and fallbacks."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import re
from typing import Any, Dict, List, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from clueflow.domain.enums import ClueType, Difficulty
from clueflow.util.grammar import clean_text
from clueflow.util.rng import Rng

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

MAX_CONTENT_LENGTH = 500


@dataclass(frozen=True)
class GenerationBrief:
    request: str
    theme: str
    setting: str
    scenario: str
    clue_type: Optional[ClueType] = None
    targets: List[str] = field(default_factory=list)
    difficulty: Optional[Difficulty] = None
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Generated:
    text: str


@dataclass(frozen=True)
class GenerationFailed:
    reason: str


GenerationResult = Union[Generated, GenerationFailed]


class ContentGenerator(Protocol):
    def generate(self, brief: GenerationBrief) -> GenerationResult: ...


class ClueDraft(BaseModel):
    """Structured clue text as returned by the generator."""

    model_config = ConfigDict(extra="ignore")

    content: str = Field(min_length=5, max_length=MAX_CONTENT_LENGTH)
    type: str = "observation"
    reliability: float = 0.7
    related_entities: List[str] = Field(default_factory=list)
    is_public: bool = True
    consequences: List[str] = Field(default_factory=list)

    @field_validator("reliability")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return max(0.0, min(1.0, value))


FALLBACK_DRAFT = ClueDraft(
    content="A mysterious detail catches your attention, but its significance remains unclear.",
    type="observation",
    reliability=0.5,
    consequences=["Further investigation may be warranted"],
)


def parse_clue_draft(text: str) -> ClueDraft:
    """Read a draft from generator output.

    A JSON object anywhere in the text wins; plain prose becomes an
    observation; malformed JSON degrades to the fixed fallback draft.
    """
    match = _JSON_OBJECT.search(text)
    if match is None:
        content = clean_text(text, MAX_CONTENT_LENGTH)
        if len(content) < 5:
            return FALLBACK_DRAFT
        return ClueDraft(content=content)
    try:
        return ClueDraft.model_validate(json.loads(match.group(0)))
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.warning("Malformed generated clue payload, using fallback draft: %s", exc)
        return FALLBACK_DRAFT


FALLBACK_CONTENT = {
    ClueType.ROLE_HINT: "Someone with unusual knowledge was noticed acting suspiciously around {setting}.",
    ClueType.ALIGNMENT_HINT: "Whispered conversations in the shadows suggest hidden alliances.",
    ClueType.ACTION_EVIDENCE: "Physical evidence suggests recent secretive activity.",
    ClueType.RELATIONSHIP: "Certain individuals seem to share unspoken understanding.",
    ClueType.BEHAVIORAL: "Nervous glances and changed behavior patterns have been observed.",
    ClueType.ENVIRONMENTAL: "The atmosphere in {setting} feels charged with unspoken tensions.",
    ClueType.RED_HERRING: "Misleading evidence points toward an unlikely suspect.",
    ClueType.DIRECT_EVIDENCE: "Traces left near {setting} point at one of the players.",
    ClueType.INVESTIGATION_RESULT: "A careful inquiry leaves a partial answer behind.",
    ClueType.NARRATIVE: "The atmosphere in {setting} grows increasingly tense as suspicions mount.",
    ClueType.SOCIAL: "Some players keep drifting toward the same quiet corner of {setting}.",
}

TITLE_TEMPLATES = {
    ClueType.ROLE_HINT: ("Suspicious Behavior", "Unusual Knowledge", "Telltale Signs"),
    ClueType.ALIGNMENT_HINT: ("Hidden Loyalties", "Secret Allegiance", "True Colors"),
    ClueType.ACTION_EVIDENCE: ("Physical Evidence", "Traces of Activity", "Proof of Action"),
    ClueType.RELATIONSHIP: ("Social Connection", "Unexpected Bond", "Hidden Link"),
    ClueType.BEHAVIORAL: ("Changed Patterns", "Nervous Behavior", "Odd Reactions"),
    ClueType.ENVIRONMENTAL: ("Atmospheric Clue", "Setting Detail", "Environmental Evidence"),
    ClueType.RED_HERRING: ("Misleading Evidence", "False Lead", "Deceptive Sign"),
    ClueType.DIRECT_EVIDENCE: ("Evidence Found", "Damning Trace", "Hard Evidence"),
    ClueType.INVESTIGATION_RESULT: ("Investigation Result", "Inquiry Findings", "Case Notes"),
    ClueType.NARRATIVE: ("Atmospheric Tension", "Story Element", "Omen"),
    ClueType.SOCIAL: ("Social Dynamic", "Shifting Alliances", "Quiet Circle"),
}


def fallback_content(clue_type: ClueType, setting: str) -> str:
    return FALLBACK_CONTENT[clue_type].format(setting=setting)


def fallback_draft(clue_type: ClueType, setting: str) -> ClueDraft:
    return ClueDraft(content=fallback_content(clue_type, setting), reliability=0.6)


def pick_title(clue_type: ClueType, rng: Rng) -> str:
    return rng.choice(TITLE_TEMPLATES[clue_type])


_THEME_IMAGERY = {
    "medieval": ("tavern", "castle"),
    "space": ("station", "void"),
    "modern": ("office", "city"),
    "fantasy": ("enchanted", "spell"),
}

_TYPE_LINES = {
    ClueType.ROLE_HINT: "Someone in the {place} knows more than a {role} should.",
    ClueType.ALIGNMENT_HINT: "Loyalties shift in the dark corners of the {place}.",
    ClueType.ACTION_EVIDENCE: "Fresh marks in the {place} betray a secret errand.",
    ClueType.RELATIONSHIP: "Two players share knowing looks across the {place}.",
    ClueType.BEHAVIORAL: "A player grows restless whenever the {place} falls quiet.",
    ClueType.ENVIRONMENTAL: "A hidden draft stirs the shadows of the {place}.",
    ClueType.RED_HERRING: "A dropped token in the {place} seems to accuse the wrong player.",
    ClueType.DIRECT_EVIDENCE: "Evidence recovered in the {place} ties one player to the night's work.",
    ClueType.INVESTIGATION_RESULT: "Questions asked in the {place} return a guarded answer.",
    ClueType.NARRATIVE: "The {place} hums with a secret no one will name.",
    ClueType.SOCIAL: "The same small circle gathers again in the {place}.",
}


class TemplateGenerator:
    """Deterministic offline generator that answers in the structured draft format."""

    def __init__(self, rng: Rng) -> None:
        self.rng = rng

    def generate(self, brief: GenerationBrief) -> GenerationResult:
        if brief.clue_type is None:
            return GenerationFailed(reason=f"no template for {brief.request}")
        theme_key = brief.theme.lower().split(" ")[0] if brief.theme else ""
        imagery = _THEME_IMAGERY.get(theme_key, ("hall",))
        place = f"{self.rng.choice(imagery)} of {brief.setting}" if brief.setting else self.rng.choice(imagery)
        role = str(brief.extras.get("role", "villager"))
        content = _TYPE_LINES[brief.clue_type].format(place=place, role=role)
        payload = {
            "content": clean_text(content),
            "type": "evidence" if brief.clue_type is ClueType.ACTION_EVIDENCE else "observation",
            "reliability": round(0.55 + self.rng.random() * 0.4, 2),
            "related_entities": list(brief.targets),
            "consequences": ["Suspicion shifts"],
        }
        return Generated(text=json.dumps(payload))


class FailingGenerator:
    """Generator that is always unavailable; every caller falls back to templates."""

    def __init__(self, reason: str = "generator offline") -> None:
        self.reason = reason

    def generate(self, brief: GenerationBrief) -> GenerationResult:
        return GenerationFailed(reason=self.reason)
