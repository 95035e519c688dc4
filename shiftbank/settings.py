from fractions import Fraction
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

NURSING_HALF_WORK_VALUES = (0.5, 0.75)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./shiftbank.db"
    app_name: str = "ShiftBank"
    cors_allow_origins: str = "http://127.0.0.1:5173,http://localhost:5173"
    log_level: str = "INFO"
    nursing_half_work_value: float = 0.5
    initial_offsets_path: str | None = None
    roster_dir: str = "csv"
    output_dir: str = "output"
    schema_guard_strict: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("nursing_half_work_value")
    @classmethod
    def _validate_nursing_half_work_value(cls, value: float) -> float:
        # 0.5 and 0.75 are both in use across roster generations.
        if value not in NURSING_HALF_WORK_VALUES:
            raise ValueError(f"nursing_half_work_value must be one of {NURSING_HALF_WORK_VALUES}, got {value}")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()


def get_cors_origins() -> list[str]:
    raw = get_settings().cors_allow_origins
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def get_nursing_half_value() -> Fraction:
    return Fraction(get_settings().nursing_half_work_value)


def get_initial_offsets_path() -> Path | None:
    raw = (get_settings().initial_offsets_path or "").strip()
    if not raw:
        return None
    return Path(raw)
