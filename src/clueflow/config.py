"""Engine settings loaded from YAML."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field

from clueflow.domain.enums import ClueType


class BalanceTolerances(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_information_advantage: float = 0.3
    max_difficulty_increase: float = 3
    max_strategic_complexity: float = 8
    win_probability_bounds: Tuple[float, float] = (-0.2, 0.2)


class InformationFlowConstraints(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    max_information_per_round: int = 15
    max_high_value_clues: int = 3
    min_red_herring_ratio: float = 0.15
    max_red_herring_ratio: float = 0.35
    distribution_target: str = "balanced"


class NarrativeCoherenceRules(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    require_thematic_alignment: bool = True
    allow_contradictory_clues: bool = False
    enforce_temporal_consistency: bool = True
    maintain_character_consistency: bool = True
    preserve_atmosphere: bool = True


class ValidationConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    coherence_threshold: float = 0.7
    consistency_required: bool = True
    thematic_alignment_threshold: float = 0.8
    balance_tolerances: BalanceTolerances = Field(default_factory=BalanceTolerances)
    information_flow: InformationFlowConstraints = Field(default_factory=InformationFlowConstraints)
    narrative_rules: NarrativeCoherenceRules = Field(default_factory=NarrativeCoherenceRules)

    def merged(self, overrides: Optional[Mapping[str, Any]]) -> "ValidationConfig":
        """Copy with partial overrides; nested sections merge key by key."""
        if not overrides:
            return self
        return ValidationConfig.model_validate(_deep_merge(self.model_dump(), overrides))


class RevelationTuning(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    chain_pairs: List[Tuple[ClueType, ClueType]] = Field(
        default_factory=lambda: [
            (ClueType.ROLE_HINT, ClueType.BEHAVIORAL),
            (ClueType.ACTION_EVIDENCE, ClueType.RELATIONSHIP),
            (ClueType.ENVIRONMENTAL, ClueType.RED_HERRING),
        ]
    )
    chain_probability: float = 0.8
    chain_depth: int = 1
    follow_up_probability: float = 0.6
    atmospheric_probability: float = 0.3
    tension_threshold: float = 0.7
    max_atmospheric_per_pass: int = 1
    expected_rounds: int = 8
    default_random_probability: float = 0.5
    phase_change_probability: float = 0.2
    max_event_reveals: int = 1
    rebalance_difficulty_increase: float = 3

    def is_chain_pair(self, first: ClueType, second: ClueType) -> bool:
        return any({first, second} == {left, right} and first != second for left, right in self.chain_pairs)


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    clue_ttl: int = 7 * 24 * 60 * 60
    schedule_ttl: int = 24 * 60 * 60
    game_ttl: int = 24 * 60 * 60
    profile_ttl: int = 60 * 60


class DifficultyPreset(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    expected_game_length: int = 8
    validation: Dict[str, Any] = Field(default_factory=dict)


class Settings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    revelation: RevelationTuning = Field(default_factory=RevelationTuning)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    presets: Dict[str, DifficultyPreset] = Field(default_factory=dict)

    def preset(self, difficulty: str) -> DifficultyPreset:
        try:
            return self.presets[difficulty]
        except KeyError:
            raise KeyError(f"Unknown difficulty preset: {difficulty}") from None

    def validation_for(self, difficulty: str) -> ValidationConfig:
        return self.validation.merged(self.preset(difficulty).validation)


def _deep_merge(base: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _defaults_path() -> Path:
    return Path(__file__).resolve().parent / "data" / "defaults.yml"


def _read_yaml(path: Path) -> Dict[str, Any]:
    return yaml.safe_load(path.read_text(encoding="utf-8")) or {}


def load_settings(path: Path | None = None) -> Settings:
    """Load the packaged defaults, deep-merging an override file over them when given."""
    data = _read_yaml(_defaults_path())
    if path:
        data = _deep_merge(data, _read_yaml(Path(path)))
    return Settings.model_validate(data)
