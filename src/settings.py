# src/settings.py
"""Paths and fixed tables shared by the panel builder and the models.

Defaults match config/pipeline.yaml; pass a YAML file to override any of them.
"""
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Dict, Optional

import yaml


DEFAULT_CONFIG = Path("config/pipeline.yaml")

COUNTRY_CODES = {"CAN": "CA", "MEX": "MX", "USA": "US"}

# cp1252 reading of a MacRoman export
REGION_NAME_FIXES = {
    "Michoac‡n": "Michoacán",
    "Nuevo Le—n": "Nuevo León",
    "QuŽbec": "Québec",
}


@dataclass(frozen=True)
class PipelineSettings:
    species_path: Path = Path("data/raw/bumblebee_occurrences.csv")
    plant_path: Path = Path("data/raw/plant_occurrences.csv")
    temperature_path: Path = Path("data/raw/average_temperature.csv")
    derived_dir: Path = Path("data/derived")

    year_min: int = 2013
    year_max: int = 2023
    country_codes: Dict[str, str] = field(default_factory=lambda: dict(COUNTRY_CODES))
    present_token: str = "PRESENT"

    plant_encoding: str = "cp1252"
    region_name_fixes: Dict[str, str] = field(default_factory=lambda: dict(REGION_NAME_FIXES))

    test_size: float = 0.2
    n_folds: int = 5
    seed: int = 42

    @property
    def plots_dir(self) -> Path:
        return self.derived_dir / "plots"

    @property
    def target_countries(self):
        return set(self.country_codes.values())


_PATH_KEYS = {"species_path", "plant_path", "temperature_path", "derived_dir"}


def load_settings(path: Optional[Path] = None) -> PipelineSettings:
    """Return default settings, overlaid with the keys found in ``path``."""
    settings = PipelineSettings()
    if path is None:
        return settings

    path = Path(path)
    if not path.is_file():
        raise SystemExit(f"No settings file at {path}")
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise SystemExit(f"{path}: settings must be a key: value mapping, got {type(data).__name__}")

    known = {f.name for f in fields(PipelineSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"{path}: unknown settings {unknown}")

    overrides = {}
    for key, value in data.items():
        if key in _PATH_KEYS:
            value = Path(value)
        elif key in ("country_codes", "region_name_fixes"):
            value = {str(k): str(v) for k, v in (value or {}).items()}
        overrides[key] = value
    return replace(settings, **overrides)
