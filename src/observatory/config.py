"""
Configuration model for the Observatory discovery engine.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger("observatory")

DEFAULT_STORAGE_KEY = "observatory:state"
DEFAULT_LOOP_DURATION_SECONDS = 22 * 60


class ObservatoryConfig(BaseModel):
    """Configuration settings for the discovery engine.

    Controls where discovery state is persisted, which knowledge graph is
    loaded, and the thresholds used by the loop clock, time-of-day detection
    and gated content checks.
    """

    # Storage
    storage_dir: Optional[Path] = Field(
        default=None,
        description="Directory for durable key-value storage (None keeps state in memory)"
    )
    storage_key: str = Field(
        default=DEFAULT_STORAGE_KEY,
        min_length=1,
        description="Key under which the serialized discovery state is stored"
    )

    # Knowledge graph
    graph_path: Optional[Path] = Field(
        default=None,
        description="YAML knowledge graph definition (None loads the bundled graph)"
    )

    # Gating
    gated_content_threshold: int = Field(
        default=10,
        ge=0,
        description="Number of discoveries required to access gated content"
    )

    # Clocks
    loop_duration_seconds: float = Field(
        default=DEFAULT_LOOP_DURATION_SECONDS,
        gt=0.0,
        description="Length of one time loop in seconds"
    )
    night_start_hour: int = Field(
        default=20,
        ge=0,
        le=23,
        description="Local hour at which night begins"
    )
    night_end_hour: int = Field(
        default=6,
        ge=0,
        le=23,
        description="Local hour at which night ends"
    )

    @field_validator("storage_dir", "graph_path", mode="before")
    @classmethod
    def empty_path_is_none(cls, v):
        """Treat empty strings (unset env vars) as no path."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def check_night_window(self) -> "ObservatoryConfig":
        if self.night_start_hour == self.night_end_hour:
            raise ValueError("night_start_hour and night_end_hour must differ")
        return self

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "ObservatoryConfig":
        """Build a configuration from OBSERVATORY_* environment variables.

        A ``.env`` file is loaded first (``env_file`` if given, otherwise the
        nearest one found from the working directory). Variables already set
        in the process environment take precedence over the file.

        Recognized variables:
            OBSERVATORY_STORAGE_DIR: storage directory
            OBSERVATORY_STORAGE_KEY: storage key
            OBSERVATORY_GRAPH_PATH: knowledge graph YAML file
            OBSERVATORY_GATE_THRESHOLD: gated content threshold
            OBSERVATORY_LOOP_SECONDS: loop duration in seconds
            OBSERVATORY_NIGHT_START: hour at which night begins
            OBSERVATORY_NIGHT_END: hour at which night ends

        Unset variables keep their defaults.
        """
        dotenv_path = str(env_file) if env_file is not None else find_dotenv(usecwd=True)
        if not dotenv_path or not load_dotenv(dotenv_path):
            logger.debug(".env file not found, using process environment only")

        values: dict[str, object] = {}
        env_map = {
            "OBSERVATORY_STORAGE_DIR": "storage_dir",
            "OBSERVATORY_STORAGE_KEY": "storage_key",
            "OBSERVATORY_GRAPH_PATH": "graph_path",
            "OBSERVATORY_GATE_THRESHOLD": "gated_content_threshold",
            "OBSERVATORY_LOOP_SECONDS": "loop_duration_seconds",
            "OBSERVATORY_NIGHT_START": "night_start_hour",
            "OBSERVATORY_NIGHT_END": "night_end_hour",
        }
        for env_name, field_name in env_map.items():
            value = os.getenv(env_name)
            if value is not None:
                values[field_name] = value
        return cls(**values)


__all__ = [
    "DEFAULT_LOOP_DURATION_SECONDS",
    "DEFAULT_STORAGE_KEY",
    "ObservatoryConfig",
]
