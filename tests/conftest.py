"""Shared fixtures for the panel and model tests."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from settings import PipelineSettings


@pytest.fixture
def settings(tmp_path) -> PipelineSettings:
    return PipelineSettings(
        species_path=tmp_path / "bees.csv",
        plant_path=tmp_path / "plants.csv",
        temperature_path=tmp_path / "temperature.csv",
        derived_dir=tmp_path / "derived",
    )


@pytest.fixture
def raw_temperature() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Country": ["United States", "Canada", "Mexico", "France"],
            "Code": ["USA", "CAN", "MEX", "FRA"],
            "X2012": [9.0, 4.0, 20.0, 11.0],
            "X2015": [10.0, 5.0, 21.0, 12.0],
            "X2016": [10.5, None, 21.5, 12.5],
        }
    )


@pytest.fixture
def raw_occurrences() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "dateIdentified": [
                "2018-05-01T00:00:00",
                "2018-06-11T14:20:00Z",
                "2015-07-04T09:00:00",
                "2010-08-01T00:00:00",
                "2019-05-05T00:00:00",
                "2019-05-06T00:00:00",
            ],
            "occurrenceStatus": ["PRESENT", "PRESENT", "ABSENT", "PRESENT", "PRESENT", "PRESENT"],
            "stateProvince": ["Ontario", "Ontario", "Texas", "Texas", "", None],
            "countryCode": ["CA", "CA", "US", "US", "US", "US"],
            "year": [2018, 2018, 2015, 2010, 2019, 2019],
        }
    )


@pytest.fixture
def synthetic_panel() -> pd.DataFrame:
    """Region-year counts with a known positive temperature effect."""
    rng = np.random.default_rng(7)
    regions = ["Alberta", "Ontario", "Quebec", "Texas", "Oregon", "Jalisco"]
    offsets = dict(zip(regions, [-0.4, 0.3, 0.0, 0.5, -0.2, 0.1]))
    rows = []
    for region in regions:
        base = rng.normal(10.0, 4.0)
        for year in range(2013, 2024):
            temp = base + rng.normal(0.0, 1.5)
            mu = np.exp(1.5 + 0.15 * (temp - 10.0) + offsets[region])
            rows.append(
                {
                    "stateProvince": region,
                    "Year": year,
                    "SpeciesCount": int(rng.poisson(mu)),
                    "PlantCount": int(rng.poisson(2 * mu)),
                    "Temperature": temp,
                }
            )
    return pd.DataFrame(rows)
