"""Bounds on the numt proportion from the cleaned newer-cohort site set.

With ``x`` as a unit offset the per-site intercept estimates
``log(c) + log(p_n)``. Since ``p_n <= 1`` the largest intercept gives a
lower bound on ``c``; the least diluted sample, the one with the largest
``x``, gives the upper bound ``expit(-max(x))``. Both are point values
from extremal statistics, not confidence limits.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy.special import expit

from .design import indicator_columns, site_levels
from .exceptions import InsufficientDataError
from .logging_config import time_it
from .regression import NEWER
from .schemas import SITE_FIT_SCHEMA
from .slopes import fit_mixed_model

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundEstimate:
    """Per-site intercepts (``cvals``) and the bounds they imply."""

    cvals: pd.Series
    lower_bound: float
    upper_bound: float
    random_effect_variance: float
    max_x: float
    n_obs: int

    def site_table(self) -> pd.DataFrame:
        return pd.DataFrame({"SNP": self.cvals.index, "intercept": self.cvals.to_numpy()})

    def to_dict(self) -> dict:
        return {
            "lower_bound": self.lower_bound,
            "upper_bound": self.upper_bound,
            "random_effect_variance": self.random_effect_variance,
            "max_x": self.max_x,
            "n_obs": self.n_obs,
            "n_sites": int(len(self.cvals)),
        }


@time_it("bounded proportion estimate")
def estimate_bounds(frame: pd.DataFrame, reml: bool = True) -> BoundEstimate:
    """Fit ``y ~ 0 + site + (1 | individual)`` with offset ``x`` and derive bounds.

    Rows with a zero alt count drop out of the fit but still bound ``c``
    from above through their ``x``.

    Args:
        frame: Regression rows with rogue sites already removed
        reml: Estimate the variance component by REML rather than ML

    Returns:
        ``BoundEstimate`` with ``lower_bound = exp(max(cvals))`` and
        ``upper_bound = expit(-max(x))``
    """
    newer = frame[frame["cohort"] == NEWER]
    usable = newer[newer["y"].notna()]
    if usable.empty:
        raise InsufficientDataError("no usable newer-cohort rows left after outlier removal")

    sites = site_levels(newer)
    exog = indicator_columns(usable["SNP"], sites, "site")
    result = fit_mixed_model(
        usable["y"] - usable["x"], exog, usable["individual"], "bounded proportion model", reml=reml
    )

    fe = result.fe_params
    cvals = pd.Series(
        [float(fe[f"site[{site}]"]) for site in sites],
        index=pd.Index(sites, name="SNP"),
        name="intercept",
    )
    max_x = float(newer["x"].max())
    estimate = BoundEstimate(
        cvals=cvals,
        lower_bound=float(np.exp(cvals.max())),
        upper_bound=float(expit(-max_x)),
        random_effect_variance=float(np.asarray(result.cov_re)[0, 0]),
        max_x=max_x,
        n_obs=int(result.nobs),
    )
    SITE_FIT_SCHEMA.validate(estimate.site_table())

    if estimate.lower_bound > estimate.upper_bound:
        logger.warning(
            f"lower bound {estimate.lower_bound:.4g} exceeds upper bound {estimate.upper_bound:.4g}; "
            "the dilution law fits these sites poorly"
        )
    logger.info(f"numt proportion bounds: [{estimate.lower_bound:.4g}, {estimate.upper_bound:.4g}]")
    return estimate
