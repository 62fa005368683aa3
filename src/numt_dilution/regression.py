"""
Cohort regression of log allele frequency on mitochondria-like read fraction.

The dilution law predicts ``log(p_obs) = -logit(mapDep) + log(c) + log(p_n)``,
so with ``x = -logit(mapDep)`` entering as a fixed offset the per-site
intercepts carry ``log(c * p_n)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy.special import logit

from .design import ensure_full_rank, indicator_columns, site_levels
from .exceptions import ConfigurationError, InsufficientDataError, SingularFitError, ValidationError
from .logging_config import time_it
from .matrix import Dataset
from .schemas import REGRESSION_INPUT_SCHEMA

logger = logging.getLogger(__name__)

OLDER = "older"
NEWER = "newer"
COHORTS = (OLDER, NEWER)


def assign_cohorts(individuals: Iterable[str], older_members: Iterable[str]) -> pd.Series:
    """Map each individual to ``"older"`` or ``"newer"`` by explicit membership.

    Raises:
        ConfigurationError: If every individual falls into the older cohort
    """
    individuals = [str(ind) for ind in individuals]
    members = {str(member) for member in older_members}

    unknown = sorted(members - set(individuals))
    if unknown:
        logger.warning(f"{len(unknown)} older-cohort identifiers not present in data: {unknown[:5]}")

    cohort = pd.Series(
        [OLDER if ind in members else NEWER for ind in individuals],
        index=pd.Index(individuals, name="individual"),
        name="cohort",
    )
    if not (cohort == NEWER).any():
        raise ConfigurationError(
            "no individuals remain in the newer cohort",
            {"n_individuals": len(individuals), "n_older": int((cohort == OLDER).sum())},
        )
    return cohort


def regression_frame(dataset: Dataset, older_members: Iterable[str]) -> pd.DataFrame:
    """Build one regression row per (individual, site).

    ``x`` is ``-logit(mapDep)``; ``y`` is ``log(alt / (alt + main))`` and is
    NaN where ``alt`` is zero.

    Raises:
        ValidationError: If a ``mapDep`` of exactly 0 or 1 makes ``x`` infinite
    """
    frame = dataset.frame
    cohort = assign_cohorts(dataset.individuals, older_members)

    x = -logit(frame["mapDep"].to_numpy(dtype=float))
    if not np.isfinite(x).all():
        n_bad = int((~np.isfinite(x)).sum())
        raise ValidationError(f"{n_bad} observations have mapDep of 0 or 1, -logit is undefined")

    alt = frame["alt"].to_numpy(dtype=np.int64)
    total = alt + frame["main"].to_numpy(dtype=np.int64)
    y = np.full(len(frame), np.nan)
    observed = alt > 0
    y[observed] = np.log(alt[observed] / total[observed])

    rows = pd.DataFrame({
        "individual": frame["individual"].to_numpy(),
        "SNP": frame["SNP"].to_numpy(),
        "cohort": frame["individual"].map(cohort).to_numpy(),
        "x": x,
        "y": y,
        "alt": alt,
        "main": frame["main"].to_numpy(dtype=np.int64),
    })
    REGRESSION_INPUT_SCHEMA.validate(rows)
    logger.debug(f"{int((~observed).sum())} of {len(rows)} rows have zero alt count, y left missing")
    return rows


@dataclass(frozen=True)
class CohortFit:
    """Per-(cohort, site) intercepts of the cohort regression."""

    params: pd.Series
    intercepts: pd.DataFrame
    n_obs: int
    slope: Optional[float] = None

    def site_intercepts(self, cohort: str = NEWER) -> pd.Series:
        """Intercepts of one cohort indexed by site."""
        subset = self.intercepts[self.intercepts["cohort"] == cohort]
        if subset.empty:
            raise InsufficientDataError(f"no intercepts fitted for cohort '{cohort}'")
        return subset.set_index("SNP")["intercept"]


@time_it("cohort regression")
def fit_cohort_intercepts(frame: pd.DataFrame, estimate_slope: bool = False) -> CohortFit:
    """Fit ``y ~ 0 + cohort + site`` with ``x`` as a coefficient-1 offset.

    Args:
        frame: Regression rows from ``regression_frame``
        estimate_slope: Estimate the ``x`` coefficient instead of fixing it at 1

    Returns:
        ``CohortFit`` with one intercept per cohort present and site

    Raises:
        SingularFitError: If a site or cohort has no non-missing ``y``
    """
    sites = site_levels(frame)
    cohorts = [c for c in COHORTS if (frame["cohort"] == c).any()]

    usable = frame[frame["y"].notna()]
    exog = pd.concat(
        [
            indicator_columns(usable["cohort"], cohorts, "cohort"),
            indicator_columns(usable["SNP"], sites, "site", drop_first=True),
        ],
        axis=1,
    )
    if estimate_slope:
        exog["x"] = usable["x"]
        endog = usable["y"]
    else:
        endog = usable["y"] - usable["x"]

    ensure_full_rank(exog, "cohort regression")
    try:
        result = sm.OLS(endog, exog).fit()
    except np.linalg.LinAlgError as exc:
        raise SingularFitError(f"cohort regression failed: {exc}") from exc

    params = result.params
    rows = []
    for cohort in cohorts:
        base = params[f"cohort[{cohort}]"]
        for site in sites:
            offset = 0.0 if site == sites[0] else params[f"site[{site}]"]
            rows.append({"cohort": cohort, "SNP": site, "intercept": float(base + offset)})

    slope = float(params["x"]) if estimate_slope else None
    logger.info(
        f"Cohort regression on {int(result.nobs)} rows, {len(sites)} sites, cohorts={cohorts}"
        + (f", slope={slope:.3f}" if slope is not None else "")
    )
    return CohortFit(
        params=params,
        intercepts=pd.DataFrame(rows),
        n_obs=int(result.nobs),
        slope=slope,
    )


def intercept_range(fit: CohortFit, cohort: str = NEWER) -> Tuple[float, float]:
    """``(min_intercept, max_intercept)`` across sites of one cohort."""
    intercepts = fit.site_intercepts(cohort)
    return float(intercepts.min()), float(intercepts.max())
