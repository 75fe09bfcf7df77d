"""Configuration loading for scharmonize runs."""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping

from scharmonize.net import DEFAULT_TIMEOUT

DEFAULT_SAMPLE_SIZE = 5000


def load_json_config(path: str | Path) -> dict[str, Any]:
    """Load and validate a run config from a JSON file."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    if config_path.suffix.lower() != ".json":
        raise ValueError(
            f"Unsupported config format for '{config_path}'. Use a .json config file."
        )

    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as exc:
        raise ValueError(
            f"Invalid JSON in config '{config_path}' at line {exc.lineno}, "
            f"column {exc.colno}: {exc.msg}"
        ) from exc

    if not isinstance(data, dict):
        raise ValueError(
            f"Invalid config root in '{config_path}': expected JSON object, got {type(data).__name__}."
        )
    return data


@dataclass(frozen=True)
class HarmonizeConfig:
    """Settings for gene-name harmonization.

    - `timeout`: seconds allowed for each network request.
    - `sample_size`: names sampled per side for id-type detection.
    - `seed`: sampling seed; None draws a fresh sample every call.
    - `homology_table`: default path or URL of the homology table.
    """

    timeout: float = DEFAULT_TIMEOUT
    sample_size: int = DEFAULT_SAMPLE_SIZE
    seed: int | None = None
    homology_table: str | None = None

    def __post_init__(self) -> None:
        if float(self.timeout) <= 0:
            raise ValueError("timeout must be positive.")
        if int(self.sample_size) <= 0:
            raise ValueError("sample_size must be a positive integer.")

    @staticmethod
    def from_mapping(payload: Mapping[str, Any]) -> "HarmonizeConfig":
        """Build a config from a mapping; unknown keys are ignored."""
        known = {f.name for f in fields(HarmonizeConfig)}
        values = {k: v for k, v in payload.items() if k in known}
        if "timeout" in values:
            values["timeout"] = float(values["timeout"])
        if "sample_size" in values:
            values["sample_size"] = int(values["sample_size"])
        if values.get("seed") is not None:
            values["seed"] = int(values["seed"])
        if values.get("homology_table") is not None:
            values["homology_table"] = str(values["homology_table"])
        return HarmonizeConfig(**values)
