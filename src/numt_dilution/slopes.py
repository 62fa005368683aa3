"""Per-site slope mixed model and rogue site classification."""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import List

import numpy as np
import pandas as pd
from statsmodels.regression.mixed_linear_model import MixedLM

from .design import ensure_full_rank, indicator_columns, site_levels
from .exceptions import ConvergenceError, InsufficientDataError, SingularFitError
from .logging_config import time_it
from .regression import NEWER

logger = logging.getLogger(__name__)

DEFAULT_SLOPE_THRESHOLD = 0.7


@dataclass(frozen=True)
class SlopeFit:
    """Per-site intercepts and slopes from the newer-cohort mixed model."""

    sites: pd.DataFrame
    reference_site: str
    random_effect_variance: float
    n_obs: int
    n_groups: int

    @property
    def slopes(self) -> pd.Series:
        return self.sites.set_index("SNP")["slope"]


def fit_mixed_model(endog: pd.Series, exog: pd.DataFrame, groups: pd.Series, label: str, reml: bool = True):
    """Fit a random-intercept ``MixedLM`` and surface solver failures.

    Raises:
        SingularFitError: If ``exog`` is rank deficient or the solver hits a singular matrix
        ConvergenceError: If the optimizer reports no convergence
    """
    ensure_full_rank(exog, label)
    model = MixedLM(endog, exog, groups=groups)
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        try:
            result = model.fit(reml=reml)
        except np.linalg.LinAlgError as exc:
            raise SingularFitError(f"{label} failed: {exc}") from exc

    messages: List[str] = [str(w.message) for w in caught]
    for message in messages:
        logger.warning(f"{label}: {message}")

    if not result.converged:
        raise ConvergenceError(
            f"{label} did not converge",
            {"warnings": messages, "n_obs": int(result.nobs)},
        )
    return result


@time_it("per-site slope model")
def fit_site_slopes(frame: pd.DataFrame, reml: bool = True) -> SlopeFit:
    """Fit ``y ~ site + x + x:site + (1 | individual)`` on the newer cohort.

    Site effects are treatment contrasts against the first site, so each
    site's slope is the reference slope plus its ``x:site`` deviation.

    Args:
        frame: Regression rows from ``regression_frame``
        reml: Estimate the variance component by REML rather than ML

    Returns:
        ``SlopeFit`` with one intercept and slope per site
    """
    newer = frame[frame["cohort"] == NEWER]
    if newer.empty:
        raise InsufficientDataError("no newer-cohort rows to fit per-site slopes")

    sites = site_levels(newer)
    reference = sites[0]
    usable = newer[newer["y"].notna()]

    site_dummies = indicator_columns(usable["SNP"], sites, "site", drop_first=True)
    interactions = site_dummies.mul(usable["x"], axis=0)
    interactions.columns = [f"x:{name}" for name in site_dummies.columns]
    exog = pd.concat(
        [
            pd.DataFrame({"Intercept": 1.0}, index=usable.index),
            site_dummies,
            usable[["x"]],
            interactions,
        ],
        axis=1,
    )

    result = fit_mixed_model(usable["y"], exog, usable["individual"], "per-site slope model", reml=reml)
    fe = result.fe_params

    rows = []
    for site in sites:
        if site == reference:
            intercept, deviation = fe["Intercept"], 0.0
        else:
            intercept = fe["Intercept"] + fe[f"site[{site}]"]
            deviation = fe[f"x:site[{site}]"]
        rows.append({
            "SNP": site,
            "intercept": float(intercept),
            "slope_deviation": float(deviation),
            "slope": float(fe["x"] + deviation),
        })

    variance = float(np.asarray(result.cov_re)[0, 0])
    n_groups = int(usable["individual"].nunique())
    logger.info(
        f"Per-site slopes for {len(sites)} sites from {int(result.nobs)} rows, "
        f"{n_groups} individuals, random intercept variance {variance:.4g}"
    )
    return SlopeFit(
        sites=pd.DataFrame(rows),
        reference_site=reference,
        random_effect_variance=variance,
        n_obs=int(result.nobs),
        n_groups=n_groups,
    )


def classify_outliers(slopes: pd.Series, slope_threshold: float = DEFAULT_SLOPE_THRESHOLD) -> pd.Series:
    """Flag sites whose frequency does not follow the 1:1 dilution law.

    A site is rogue when ``abs(slope) < slope_threshold``.
    """
    rogue = (slopes.abs() < slope_threshold).rename("rogue")
    logger.info(f"{int(rogue.sum())} of {len(rogue)} sites flagged rogue (|slope| < {slope_threshold})")
    return rogue


def drop_outliers(frame: pd.DataFrame, rogue: pd.Series) -> pd.DataFrame:
    """Remove rogue sites from every cohort."""
    flagged = set(rogue.index[rogue.to_numpy(dtype=bool)])
    return frame[~frame["SNP"].isin(flagged)].reset_index(drop=True)
