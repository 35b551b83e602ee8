# src/clean_records.py
"""Load and clean the occurrence and temperature tables."""
import re
import warnings
from pathlib import Path

import pandas as pd

from settings import PipelineSettings

OCCURRENCE_COLUMNS = ["dateIdentified", "occurrenceStatus", "stateProvince"]
YEAR_COLUMN = r"^\D*(\d{4})$"
# date plus at least hours and minutes
FULL_TIMESTAMP = r"^\s*\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}"


# -------------------------------------------------------------------
# Loading
# -------------------------------------------------------------------
def read_table(path, encoding: str = "utf-8", encoding_errors: str = "strict") -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise SystemExit(f"Input not found: {path}")
    df = pd.read_csv(path, encoding=encoding, encoding_errors=encoding_errors, low_memory=False)
    print(f"Loaded {path}: {len(df)} rows x {df.shape[1]} columns")
    return df


def require_columns(df: pd.DataFrame, cols, what: str):
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise ValueError(f"{what} table is missing columns: {missing}")


def tidy_columns(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()
    out.columns = [str(c).lstrip("\ufeff").strip() for c in out.columns]
    return out


def in_year_range(years: pd.Series, settings: PipelineSettings) -> pd.Series:
    return years.between(settings.year_min, settings.year_max)


# -------------------------------------------------------------------
# Temperature
# -------------------------------------------------------------------
def clean_temperature(raw: pd.DataFrame, settings: PipelineSettings) -> pd.DataFrame:
    """Wide per-year temperature table -> long (countryCode, Year, Temperature).

    Year columns look like ``X2015`` (any non-numeric prefix, or none). Codes
    outside the country map are dropped.
    """
    df = tidy_columns(raw)
    require_columns(df, ["Code"], "Temperature")

    year_cols = [c for c in df.columns if re.match(YEAR_COLUMN, c)]
    if not year_cols:
        raise ValueError("Temperature table has no year columns (expected names like X2015)")

    long = df.melt(id_vars=["Code"], value_vars=year_cols, var_name="Year", value_name="Temperature")
    long = long.assign(
        Year=long["Year"].str.extract(YEAR_COLUMN, expand=False).astype("int64"),
        Temperature=pd.to_numeric(long["Temperature"], errors="coerce"),
    )

    long = long[in_year_range(long["Year"], settings)]
    long = long.dropna(subset=["Temperature"])

    long = long.assign(countryCode=long["Code"].map(settings.country_codes))
    n_unmapped = int(long["countryCode"].isna().sum())
    long = long[long["countryCode"].isin(settings.target_countries)]
    print(f"Temperature: kept {len(long)} rows, {n_unmapped} rows outside {sorted(settings.target_countries)}")

    return long[["countryCode", "Year", "Temperature"]].reset_index(drop=True)


# -------------------------------------------------------------------
# Occurrences (bumblebees and plants share one schema)
# -------------------------------------------------------------------
def parse_year(stamps: pd.Series) -> pd.Series:
    """Calendar year of full ISO-8601 date-times; partial dates give NA."""
    stamps = stamps.where(stamps.astype(str).str.match(FULL_TIMESTAMP))
    parsed = pd.to_datetime(stamps, format="ISO8601", errors="coerce", utc=True)
    return parsed.dt.year.astype("Int64")


def clean_occurrences(raw: pd.DataFrame, settings: PipelineSettings, source: str = "occurrence") -> pd.DataFrame:
    """Add Year and Presence, keep the year window and rows with a region.

    Timestamps that do not parse are dropped with a RuntimeWarning.
    """
    df = tidy_columns(raw)
    require_columns(df, OCCURRENCE_COLUMNS, source.capitalize())

    year = parse_year(df["dateIdentified"])
    n_bad = int(year.isna().sum())
    if n_bad:
        warnings.warn(f"{source}: dropped {n_bad} rows with unparseable dateIdentified", RuntimeWarning)
    df = df[year.notna()].assign(Year=year[year.notna()].astype("int64"))
    df = df[in_year_range(df["Year"], settings)]

    region = df["stateProvince"].astype("string").str.strip()
    keep = (region.notna() & (region != "")).fillna(False).astype(bool)
    df = df[keep].assign(stateProvince=region[keep].astype(object))

    df = df.assign(Presence=(df["occurrenceStatus"] == settings.present_token).astype("int64"))
    print(f"{source}: {len(df)} cleaned records, {int(df['Presence'].sum())} present")
    return df.reset_index(drop=True)
