# src/modeling.py
"""Hierarchical Bayesian Poisson models of bumblebee / plant counts.

Every model has a random intercept per stateProvince and is fitted by
variational Bayes (statsmodels PoissonBayesMixedGLM). Each one is scored on
a seeded train/test split and by seeded K-fold cross-validation.

    python src/modeling.py [--config config/pipeline.yaml] [--seed 42]
"""
import argparse
import warnings
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pandas as pd
import statsmodels.api as sm
from statsmodels.genmod.bayes_mixed_glm import PoissonBayesMixedGLM

from sklearn.preprocessing import StandardScaler
from sklearn.model_selection import KFold, train_test_split
from sklearn.metrics import mean_squared_error, mean_absolute_error

from clean_records import read_table
from join_climate import PANEL_KEYS
from settings import load_settings
import plots

MIN_ROWS = 8
SMALL_SAMPLE = 30

# scaled predictor name for each panel column
PREDICTOR_NAMES = {"Temperature": "temp_z", "PlantCount": "plants_z"}

# name -> (panel, response, predictors)
MODEL_SPECS = {
    "species_temperature": ("species", "SpeciesCount", ["Temperature"]),
    "plant_temperature": ("plant", "PlantCount", ["Temperature"]),
    "species_plants": ("combined", "SpeciesCount", ["Temperature", "PlantCount"]),
}


@dataclass(frozen=True)
class FittedModel:
    response: str
    predictors: list
    scaler: StandardScaler
    regions: list
    result: object

    @property
    def fixed_effects(self) -> pd.Series:
        return pd.Series(self.result.fe_mean, index=self.result.model.fep_names)

    @property
    def region_effects(self) -> pd.Series:
        return pd.Series(self.result.vc_mean, index=self.regions)


# -------------------------------------------------------------------
# Data prep
# -------------------------------------------------------------------
def combine_panels(species_panel: pd.DataFrame, plant_panel: pd.DataFrame) -> pd.DataFrame:
    """Region-years present in both panels, with species-side Temperature."""
    return species_panel.merge(plant_panel[PANEL_KEYS + ["PlantCount"]], on=PANEL_KEYS, how="inner")


def prepare_model_frame(panel: pd.DataFrame, response: str, predictors) -> pd.DataFrame:
    cols = PANEL_KEYS + [response] + list(predictors)
    frame = panel[cols].dropna()
    n_dropped = len(panel) - len(frame)
    if n_dropped:
        print(f"{response}: dropped {n_dropped} region-years with missing values")

    n = len(frame)
    if n < MIN_ROWS:
        raise ValueError(f"{response}: only {n} complete rows, need at least {MIN_ROWS}")
    if n < SMALL_SAMPLE:
        warnings.warn(f"{response}: small sample (n={n}); posterior and CV may be unstable.", RuntimeWarning)
    return frame.reset_index(drop=True)


def split_panel(frame: pd.DataFrame, test_size: float, seed: int):
    train, test = train_test_split(frame, test_size=test_size, random_state=seed, shuffle=True)
    return train.reset_index(drop=True), test.reset_index(drop=True)


def design_matrix(frame: pd.DataFrame, predictors, scaler: StandardScaler) -> pd.DataFrame:
    scaled = pd.DataFrame(
        scaler.transform(frame[list(predictors)].to_numpy(dtype="float64")),
        columns=[PREDICTOR_NAMES.get(p, p) for p in predictors],
    )
    return sm.add_constant(scaled, has_constant="add")


# -------------------------------------------------------------------
# Fit / predict
# -------------------------------------------------------------------
def fit_count_model(train: pd.DataFrame, response: str, predictors) -> FittedModel:
    predictors = list(predictors)
    scaler = StandardScaler().fit(train[predictors].to_numpy(dtype="float64"))
    exog = design_matrix(train, predictors, scaler)

    regions = sorted(train["stateProvince"].unique())
    exog_vc = pd.get_dummies(
        pd.Categorical(train["stateProvince"], categories=regions)
    ).to_numpy(dtype="float64")
    ident = np.zeros(len(regions), dtype=int)

    model = PoissonBayesMixedGLM(
        train[response].to_numpy(dtype="float64"),
        exog.to_numpy(),
        exog_vc,
        ident,
        vcp_p=1,
        fe_p=2,
        fep_names=list(exog.columns),
        vcp_names=["stateProvince"],
        vc_names=regions,
    )
    result = model.fit_vb()
    return FittedModel(response, predictors, scaler, regions, result)


def predict_counts(fitted: FittedModel, frame: pd.DataFrame) -> np.ndarray:
    """Posterior-mean expected counts; regions unseen in training get no offset."""
    exog = design_matrix(frame, fitted.predictors, fitted.scaler)
    eta = exog.to_numpy() @ fitted.result.fe_mean
    offsets = frame["stateProvince"].map(fitted.region_effects).fillna(0.0).to_numpy()
    return np.exp(eta + offsets)


def score(y_true, y_pred) -> dict:
    return {
        "rmse": float(np.sqrt(mean_squared_error(y_true, y_pred))),
        "mae": float(mean_absolute_error(y_true, y_pred)),
    }


def evaluate_holdout(frame: pd.DataFrame, response: str, predictors, test_size: float, seed: int):
    """Fit on the train split, score on the test split.

    Returns (fitted, test frame with a ``predicted`` column, metrics).
    """
    train, test = split_panel(frame, test_size, seed)
    fitted = fit_count_model(train, response, predictors)
    test = test.assign(predicted=predict_counts(fitted, test))
    return fitted, test, score(test[response], test["predicted"])


def cross_validate(frame: pd.DataFrame, response: str, predictors, n_folds: int, seed: int) -> dict:
    k = min(n_folds, max(2, len(frame) // 3))
    folds = KFold(n_splits=k, shuffle=True, random_state=seed)
    rows = []
    for i, (train_idx, test_idx) in enumerate(folds.split(frame)):
        train, test = frame.iloc[train_idx], frame.iloc[test_idx]
        try:
            fitted = fit_count_model(train, response, predictors)
            rows.append(score(test[response], predict_counts(fitted, test)))
        except (ValueError, np.linalg.LinAlgError) as e:
            warnings.warn(f"CV fold {i} failed for {response}: {e}")
            rows.append({"rmse": np.nan, "mae": np.nan})
    cv = pd.DataFrame(rows)
    return {"rmse_cv": cv["rmse"].mean(), "mae_cv": cv["mae"].mean(), "n_folds": k}


def run_models(species_panel: pd.DataFrame, plant_panel: pd.DataFrame,
               test_size: float, n_folds: int, seed: int):
    """Fit every model in MODEL_SPECS.

    Returns (comparison table, {name: (fitted, scored test frame)}).
    """
    panels = {
        "species": species_panel,
        "plant": plant_panel,
        "combined": combine_panels(species_panel, plant_panel),
    }
    rows, fits = [], {}
    for name, (panel_name, response, predictors) in MODEL_SPECS.items():
        frame = prepare_model_frame(panels[panel_name], response, predictors)
        fitted, test, holdout = evaluate_holdout(frame, response, predictors, test_size, seed)
        cv = cross_validate(frame, response, predictors, n_folds, seed)
        fits[name] = (fitted, test)

        effects = fitted.fixed_effects
        rows.append({
            "model": name,
            "n": len(frame),
            "n_regions": frame["stateProvince"].nunique(),
            "temp_effect": effects.get("temp_z", np.nan),
            "rmse_test": holdout["rmse"],
            "mae_test": holdout["mae"],
            **cv,
        })
        print(f"Fitted {name}: n={len(frame)}, test RMSE={holdout['rmse']:.3f}")

    comparison = pd.DataFrame(rows).sort_values("rmse_cv", ignore_index=True)
    return comparison, fits


def write_results(comparison: pd.DataFrame, fits: dict, out_dir: Path):
    out_dir.mkdir(parents=True, exist_ok=True)
    for name, (fitted, _) in fits.items():
        path = out_dir / f"model_{name}_summary.txt"
        with open(path, "w") as f:
            f.write(fitted.result.summary().as_text())
        print(f"Saved: {path}")
    comparison.to_csv(out_dir / "model_comparison.csv", index=False)
    print(f"Saved: {out_dir / 'model_comparison.csv'}")


def main(argv=None):
    ap = argparse.ArgumentParser(description="Fit count ~ temperature models on the derived panels.")
    ap.add_argument("--config", type=Path, default=None, help="YAML settings file")
    ap.add_argument("--seed", type=int, default=None, help="overrides the configured seed")
    args = ap.parse_args(argv)

    settings = load_settings(args.config)
    seed = settings.seed if args.seed is None else args.seed
    derived = settings.derived_dir

    species_panel = read_table(derived / "species_panel.csv")
    plant_panel = read_table(derived / "plant_panel.csv")
    temperature = read_table(derived / "temperature_by_country.csv")

    comparison, fits = run_models(species_panel, plant_panel, settings.test_size, settings.n_folds, seed)
    write_results(comparison, fits, derived)
    print(comparison)

    plots.draw_all(species_panel, plant_panel, temperature, fits, settings.plots_dir)
    print("All modeling and plots complete.")


if __name__ == "__main__":
    main()
