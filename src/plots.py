# src/plots.py
"""Descriptive plots of the count panels and model fit plots."""
from pathlib import Path

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np


def savefig(path: Path):
    plt.tight_layout()
    plt.savefig(path, dpi=150)
    plt.close("all")
    print(f"Saved: {path}")


def plot_yearly_totals(species_panel, plant_panel, path: Path):
    species = species_panel.groupby("Year")["SpeciesCount"].sum()
    plant = plant_panel.groupby("Year")["PlantCount"].sum()

    fig, ax = plt.subplots(figsize=(7, 4))
    ax.plot(species.index, species.values, marker="o", label="Bumblebee records")
    ax.plot(plant.index, plant.values, marker="s", label="Forage plant records")
    ax.set_xlabel("Year")
    ax.set_ylabel("Presence records")
    ax.set_title("Yearly presence records")
    ax.grid(True, alpha=0.3)
    ax.legend()
    savefig(path)


def plot_count_vs_temperature(panel, count_column: str, path: Path):
    fig, ax = plt.subplots(figsize=(6, 4))
    sub = panel.dropna(subset=["Temperature"])
    ax.scatter(sub["Temperature"], sub[count_column], alpha=0.6, s=20)
    ax.set_yscale("symlog")
    ax.set_xlabel("Mean annual temperature")
    ax.set_ylabel(count_column)
    ax.set_title(f"{count_column} vs temperature by region-year")
    ax.grid(True, alpha=0.3)
    savefig(path)


def plot_temperature_by_country(temperature, path: Path):
    fig, ax = plt.subplots(figsize=(7, 4))
    for code, grp in temperature.groupby("countryCode"):
        ax.plot(grp["Year"], grp["Temperature"], marker="o", label=code)
    ax.set_xlabel("Year")
    ax.set_ylabel("Mean temperature")
    ax.set_title("Average temperature by country")
    ax.grid(True, alpha=0.3)
    ax.legend()
    savefig(path)


def plot_observed_vs_predicted(test, response: str, tag: str, path: Path):
    fig, ax = plt.subplots(figsize=(5, 5))
    ax.scatter(test[response], test["predicted"], alpha=0.7)
    hi = float(np.nanmax([test[response].max(), test["predicted"].max(), 1.0]))
    ax.plot([0, hi], [0, hi], color="k", linewidth=1)
    ax.set_xlabel(f"Observed {response}")
    ax.set_ylabel("Predicted (posterior mean)")
    ax.set_title(f"Test split: {tag}")
    ax.grid(True, alpha=0.3)
    savefig(path)


def draw_all(species_panel, plant_panel, temperature, fits, out_dir: Path):
    out_dir.mkdir(parents=True, exist_ok=True)
    plot_yearly_totals(species_panel, plant_panel, out_dir / "yearly_totals.png")
    plot_count_vs_temperature(species_panel, "SpeciesCount", out_dir / "species_vs_temperature.png")
    plot_count_vs_temperature(plant_panel, "PlantCount", out_dir / "plants_vs_temperature.png")
    plot_temperature_by_country(temperature, out_dir / "temperature_by_country.png")
    for name, (fitted, test) in fits.items():
        plot_observed_vs_predicted(test, fitted.response, name, out_dir / f"observed_vs_predicted_{name}.png")
