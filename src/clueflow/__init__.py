"""Clue lifecycle engine for social-deduction games."""

from clueflow.config import Settings, load_settings
from clueflow.domain.errors import (
    AlreadyRevealedError,
    ClueEngineError,
    ClueExpiredError,
    NotFoundError,
    PreconditionError,
    StorageError,
)
from clueflow.lifecycle.system import (
    ClueSystem,
    GameClueConfig,
    GameClueSet,
    PlayerPerformanceMetrics,
    build_clue_system,
    create_standard_clue_config,
)

__all__ = [
    "Settings",
    "load_settings",
    "AlreadyRevealedError",
    "ClueEngineError",
    "ClueExpiredError",
    "NotFoundError",
    "PreconditionError",
    "StorageError",
    "ClueSystem",
    "GameClueConfig",
    "GameClueSet",
    "PlayerPerformanceMetrics",
    "build_clue_system",
    "create_standard_clue_config",
]
