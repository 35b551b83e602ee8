# src/join_climate.py
"""Join country temperature onto bumblebee and plant records and build the
(stateProvince, Year) count panels used by the models.

    python src/join_climate.py [--config config/pipeline.yaml]
"""
import argparse
from pathlib import Path

import pandas as pd

from clean_records import clean_occurrences, clean_temperature, read_table, require_columns
from settings import PipelineSettings, load_settings

KEYS = ["Year", "countryCode"]
PANEL_KEYS = ["stateProvince", "Year"]


def aggregate_temperature(observations: pd.DataFrame) -> pd.DataFrame:
    """Mean temperature per (Year, countryCode); NaN readings are skipped and
    an all-NaN group stays NaN."""
    return (observations.groupby(KEYS, as_index=False)["Temperature"]
                        .mean()
                        .sort_values(KEYS, ignore_index=True))


def join_temperature(records: pd.DataFrame, temperature: pd.DataFrame) -> pd.DataFrame:
    """Left join: every record is kept once, unmatched ones get NaN Temperature."""
    require_columns(records, KEYS, "Occurrence")
    temperature = temperature[KEYS + ["Temperature"]]
    if temperature.duplicated(KEYS).any():
        raise ValueError("temperature must have one row per (Year, countryCode); aggregate it first")
    return records.merge(temperature, on=KEYS, how="left")


def aggregate_count_panel(joined: pd.DataFrame, count_column: str) -> pd.DataFrame:
    panel = (joined.groupby(PANEL_KEYS, as_index=False)
                   .agg(**{count_column: ("Presence", "sum"),
                           "Temperature": ("Temperature", "mean")}))
    panel[count_column] = panel[count_column].astype("int64")
    panel["Temperature"] = panel["Temperature"].astype("float64")
    return panel.sort_values(PANEL_KEYS, ignore_index=True)


def repair_region_names(df: pd.DataFrame, fixes) -> pd.DataFrame:
    """Swap the known mis-decoded region names for their correct spelling.

    Exact matches only; anything not in ``fixes`` is left as is. Run it on
    records before grouping so a fixed name merges with its correct twin.
    """
    out = df.copy()
    out["stateProvince"] = out["stateProvince"].replace(dict(fixes))
    return out


def build_panels(settings: PipelineSettings):
    """Run load -> clean -> join -> aggregate for both sources.

    Returns (species_panel, plant_panel, temperature_by_country).
    """
    temp_raw = read_table(settings.temperature_path)
    species_raw = read_table(settings.species_path)
    # bytes cp1252 leaves undefined (0x81, 0x8D, 0x8F, 0x90, 0x9D) become U+FFFD
    plant_raw = read_table(settings.plant_path, encoding=settings.plant_encoding, encoding_errors="replace")

    temperature = aggregate_temperature(clean_temperature(temp_raw, settings))

    species = clean_occurrences(species_raw, settings, source="bumblebee")
    species_panel = aggregate_count_panel(join_temperature(species, temperature), "SpeciesCount")

    plants = clean_occurrences(plant_raw, settings, source="plant")
    plants = repair_region_names(plants, settings.region_name_fixes)
    plant_panel = aggregate_count_panel(join_temperature(plants, temperature), "PlantCount")

    return species_panel, plant_panel, temperature


def write_panels(species_panel, plant_panel, temperature, out_dir: Path):
    out_dir.mkdir(parents=True, exist_ok=True)
    paths = {
        "species_panel.csv": species_panel,
        "plant_panel.csv": plant_panel,
        "temperature_by_country.csv": temperature,
    }
    for name, df in paths.items():
        df.to_csv(out_dir / name, index=False, encoding="utf-8")
    print("Wrote: " + ", ".join(str(out_dir / name) for name in paths))


def main(argv=None):
    ap = argparse.ArgumentParser(description="Build species and plant count panels.")
    ap.add_argument("--config", type=Path, default=None, help="YAML settings file")
    args = ap.parse_args(argv)

    settings = load_settings(args.config)
    species_panel, plant_panel, temperature = build_panels(settings)
    print(f"Species panel: {len(species_panel)} region-years; plant panel: {len(plant_panel)} region-years")
    write_panels(species_panel, plant_panel, temperature, settings.derived_dir)


if __name__ == "__main__":
    main()
