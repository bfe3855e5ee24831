"""Project-level configuration, path helpers and layer settings."""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Union

from .models.health import AGENT_HEALTH_WEIGHTS, FACILITY_HEALTH_WEIGHTS, HealthWeights

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "ot_agents.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

DEFAULT_ESCALATION_WINDOW = timedelta(hours=1)
DEFAULT_CONFLICT_WINDOW = timedelta(hours=1)
DEFAULT_MAX_MESSAGES = 10000
DEFAULT_MAX_KNOWLEDGE = 1000
DEFAULT_MAX_OBSERVATIONS = 1000
DEFAULT_LLM_TEMPERATURE = 0.3
DEFAULT_LLM_MAX_TOKENS = 1000


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


@dataclass(frozen=True)
class LayerSettings:
    """Tunable constants of the observation and coordination layer."""

    escalation_window: timedelta = DEFAULT_ESCALATION_WINDOW
    conflict_window: timedelta = DEFAULT_CONFLICT_WINDOW
    max_messages: int = DEFAULT_MAX_MESSAGES
    max_knowledge: int = DEFAULT_MAX_KNOWLEDGE
    max_observations: int = DEFAULT_MAX_OBSERVATIONS
    agent_health_weights: HealthWeights = field(default=AGENT_HEALTH_WEIGHTS)
    facility_health_weights: HealthWeights = field(default=FACILITY_HEALTH_WEIGHTS)
    llm_temperature: float = DEFAULT_LLM_TEMPERATURE
    llm_max_tokens: int = DEFAULT_LLM_MAX_TOKENS

    @classmethod
    def from_env(cls) -> "LayerSettings":
        """
        Build settings from environment variables.

        Unset variables keep their defaults. Health weight variables override
        the per-agent weights only; the facility composite keeps its own.
        """
        agent_weights = HealthWeights(
            critical=_env_int("HEALTH_WEIGHT_CRITICAL", AGENT_HEALTH_WEIGHTS.critical),
            high=_env_int("HEALTH_WEIGHT_HIGH", AGENT_HEALTH_WEIGHTS.high),
            medium=_env_int("HEALTH_WEIGHT_OTHER", AGENT_HEALTH_WEIGHTS.medium),
            low=_env_int("HEALTH_WEIGHT_OTHER", AGENT_HEALTH_WEIGHTS.low),
        )
        return cls(
            escalation_window=timedelta(
                seconds=_env_int(
                    "ESCALATION_WINDOW_SECONDS",
                    int(DEFAULT_ESCALATION_WINDOW.total_seconds()),
                )
            ),
            conflict_window=timedelta(
                seconds=_env_int(
                    "CONFLICT_WINDOW_SECONDS",
                    int(DEFAULT_CONFLICT_WINDOW.total_seconds()),
                )
            ),
            max_messages=_env_int("BREAKROOM_MAX_MESSAGES", DEFAULT_MAX_MESSAGES),
            max_knowledge=_env_int("BREAKROOM_MAX_KNOWLEDGE", DEFAULT_MAX_KNOWLEDGE),
            max_observations=_env_int("BREAKROOM_MAX_OBSERVATIONS", DEFAULT_MAX_OBSERVATIONS),
            agent_health_weights=agent_weights,
            llm_temperature=float(
                os.getenv("LLM_TEMPERATURE", str(DEFAULT_LLM_TEMPERATURE))
            ),
            llm_max_tokens=_env_int("LLM_MAX_TOKENS", DEFAULT_LLM_MAX_TOKENS),
        )


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)
