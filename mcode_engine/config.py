"""
Engine configuration.

Settings come from the environment, with a `.env` file at the project root
loaded first. Every setting has a default, so an empty environment gives a
working engine.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

from .profiles import DEFAULT_PROFILE_TABLE

# Load .env from project root (parent of mcode_engine/)
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path, override=True)

TRUE_VALUES = ("1", "true", "yes", "on")


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in TRUE_VALUES


def _env_tokens(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return tuple(token.strip().lower() for token in value.split(",") if token.strip())


@dataclass(frozen=True)
class EngineSettings:
    """
    Classification engine settings.

    active_status_codes / recurrence_status_codes:
        Condition clinicalStatus codes read as "active" and as "recurrence".
    strict_ratio_comparators:
        Ratio thresholds only apply when numerator, denominator and target
        carry the same comparator.
    emit_non_invasive_stage:
        Stage 0 also yields NON_INVASIVE ahead of ZERO.
    """
    profile_table_path: str = str(DEFAULT_PROFILE_TABLE)
    active_status_codes: Tuple[str, ...] = ("active",)
    recurrence_status_codes: Tuple[str, ...] = ("recurrence",)
    strict_ratio_comparators: bool = False
    emit_non_invasive_stage: bool = False
    log_level: str = "INFO"
    log_file: Optional[str] = "mcode_engine.log"
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "EngineSettings":
        return cls(
            profile_table_path=os.getenv("MCODE_PROFILE_TABLE_PATH") or str(DEFAULT_PROFILE_TABLE),
            active_status_codes=_env_tokens("MCODE_ACTIVE_STATUS_CODES", ("active",)),
            recurrence_status_codes=_env_tokens("MCODE_RECURRENCE_STATUS_CODES", ("recurrence",)),
            strict_ratio_comparators=_env_bool("MCODE_STRICT_RATIO_COMPARATORS"),
            emit_non_invasive_stage=_env_bool("MCODE_EMIT_NON_INVASIVE_STAGE"),
            log_level=os.getenv("MCODE_LOG_LEVEL", "INFO").upper(),
            log_file=os.getenv("MCODE_LOG_FILE", "mcode_engine.log") or None,
            host=os.getenv("MCODE_HOST", "0.0.0.0"),
            port=int(os.getenv("MCODE_PORT", "8000")),
        )


# Global settings instance
_settings: Optional[EngineSettings] = None


def get_settings() -> EngineSettings:
    """Get or create the process-wide settings."""
    global _settings
    if _settings is None:
        _settings = EngineSettings.from_env()
    return _settings
