"""Residual structure of the site-only dilution model and its principal components."""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd
import statsmodels.api as sm
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler

from .design import ensure_full_rank, indicator_columns, site_levels
from .exceptions import ConvergenceError, InsufficientDataError, SingularFitError
from .logging_config import time_it

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResidualFit:
    """Response-scale residuals of the log-link binomial GLM."""

    coefficients: pd.Series
    residuals: pd.DataFrame
    deviance: float
    n_obs: int


@dataclass(frozen=True)
class ResidualPCA:
    """PCA of the row-centred residual matrix.

    ``scaled`` is the unit-variance input handed to the decomposition;
    ``labels`` carries each individual's suffix code for colouring and has
    no statistical role.
    """

    scores: pd.DataFrame
    components: pd.DataFrame
    explained_variance: pd.Series
    explained_variance_ratio: pd.Series
    scaled: pd.DataFrame
    labels: pd.Series
    dropped_sites: List[str]

    def scores_frame(self) -> pd.DataFrame:
        """Individual scores with the label column attached."""
        frame = self.scores.copy()
        frame.insert(0, "group", self.labels.reindex(frame.index))
        return frame.reset_index()


def _start_params(rows: pd.DataFrame, sites: Sequence[str]) -> np.ndarray:
    # per-site moment estimate of log(sum alt / sum total * exp(x))
    expected = (rows["alt"] + rows["main"]) * np.exp(rows["x"])
    grouped = pd.DataFrame({"SNP": rows["SNP"], "alt": rows["alt"], "expected": expected}).groupby("SNP")
    sums = grouped.sum().reindex(list(sites))
    return np.log(np.maximum(sums["alt"].to_numpy(dtype=float), 0.5) / sums["expected"].to_numpy(dtype=float))


@time_it("residual GLM")
def fit_residual_glm(frame: pd.DataFrame) -> ResidualFit:
    """Fit ``(alt, main) ~ 0 + site`` as a binomial GLM with log link and offset ``x``.

    Rows with no reads at all carry no information on a proportion and
    are left out. Residuals are observed minus fitted proportions.

    Args:
        frame: Regression rows of the cleaned site set

    Returns:
        ``ResidualFit`` with one residual per usable (individual, site)
    """
    rows = frame[(frame["alt"] + frame["main"]) > 0]
    if rows.empty:
        raise InsufficientDataError("no rows with reads for the residual model")

    sites = site_levels(rows)
    exog = indicator_columns(rows["SNP"], sites, "site")
    ensure_full_rank(exog, "residual GLM")

    endog = np.column_stack([rows["alt"].to_numpy(dtype=float), rows["main"].to_numpy(dtype=float)])
    family = sm.families.Binomial(link=sm.families.links.Log())
    model = sm.GLM(endog, exog, family=family, offset=rows["x"].to_numpy(dtype=float))

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        try:
            result = model.fit(start_params=_start_params(rows, sites))
        except np.linalg.LinAlgError as exc:
            raise SingularFitError(f"residual GLM failed: {exc}") from exc

    for message in (str(w.message) for w in caught):
        logger.warning(f"residual GLM: {message}")

    fitted = np.asarray(result.fittedvalues, dtype=float)
    if not result.converged or not np.isfinite(fitted).all():
        raise ConvergenceError("residual GLM did not converge", {"n_obs": len(rows)})

    observed = rows["alt"].to_numpy(dtype=float) / (rows["alt"] + rows["main"]).to_numpy(dtype=float)
    residuals = pd.DataFrame({
        "individual": rows["individual"].to_numpy(),
        "SNP": rows["SNP"].to_numpy(),
        "observed": observed,
        "fitted": fitted,
        "residual": observed - fitted,
    })
    coefficients = pd.Series(np.asarray(result.params), index=pd.Index(sites, name="SNP"), name="intercept")
    logger.info(f"Residual GLM on {len(rows)} rows, {len(sites)} sites, deviance {result.deviance:.4g}")
    return ResidualFit(
        coefficients=coefficients,
        residuals=residuals,
        deviance=float(result.deviance),
        n_obs=len(rows),
    )


def center_rows(matrix: pd.DataFrame) -> pd.DataFrame:
    """Subtract each individual's mean residual from its row."""
    return matrix.sub(matrix.mean(axis=1), axis=0)


def residual_matrix(
    fit: ResidualFit,
    individuals: Optional[Iterable[str]] = None,
    sites: Optional[Iterable[str]] = None
) -> pd.DataFrame:
    """Individual x site matrix of row-centred residuals.

    Pairs without reads stay NaN and are ignored by the row mean.
    """
    matrix = fit.residuals.pivot(index="individual", columns="SNP", values="residual")
    if individuals is not None:
        matrix = matrix.reindex(index=list(individuals))
    if sites is not None:
        matrix = matrix.reindex(columns=list(sites))
    matrix.index.name = "individual"
    matrix.columns.name = "SNP"
    return center_rows(matrix)


def suffix_codes(individuals: Iterable[str], suffix_labels: Optional[Dict[str, str]] = None) -> pd.Series:
    """Last character of each individual label, optionally mapped to a group name."""
    individuals = [str(ind) for ind in individuals]
    codes = [ind[-1] if ind else "" for ind in individuals]
    if suffix_labels:
        codes = [suffix_labels.get(code, code) for code in codes]
    return pd.Series(
        pd.Categorical(codes),
        index=pd.Index(individuals, name="individual"),
        name="group",
    )


def residual_pca(
    matrix: pd.DataFrame,
    suffix_labels: Optional[Dict[str, str]] = None,
    n_components: Optional[int] = None
) -> ResidualPCA:
    """PCA over the residual matrix with each site scaled to unit variance.

    Sites with missing residuals or no variance cannot be scaled and are
    dropped before the decomposition.

    Args:
        matrix: Row-centred individual x site residuals
        suffix_labels: Optional mapping from suffix character to group label
        n_components: Number of components, all of them when omitted

    Returns:
        ``ResidualPCA`` with individual scores and per-component variance
    """
    complete = matrix.loc[:, matrix.notna().all(axis=0)]
    varying = complete.loc[:, complete.std(axis=0, ddof=1) > 0]
    dropped = [site for site in matrix.columns if site not in varying.columns]
    if dropped:
        logger.warning(f"Dropping {len(dropped)} sites with missing or constant residuals before PCA")

    n_rows, n_cols = varying.shape
    if n_rows < 2 or n_cols < 1:
        raise InsufficientDataError(
            f"residual PCA needs at least 2 individuals and 1 varying site, got {n_rows} x {n_cols}"
        )

    scaled = StandardScaler().fit_transform(varying.to_numpy(dtype=float))
    k = n_components or min(n_rows, n_cols)
    pca = PCA(n_components=k)
    scores = pca.fit_transform(scaled)

    names = [f"PC{i + 1}" for i in range(pca.n_components_)]
    logger.info(
        f"Residual PCA on {n_rows} individuals x {n_cols} sites; "
        f"PC1 explains {pca.explained_variance_ratio_[0]:.1%}"
    )
    return ResidualPCA(
        scores=pd.DataFrame(scores, index=varying.index, columns=names),
        components=pd.DataFrame(pca.components_, index=names, columns=varying.columns),
        explained_variance=pd.Series(pca.explained_variance_, index=names, name="explained_variance"),
        explained_variance_ratio=pd.Series(
            pca.explained_variance_ratio_, index=names, name="explained_variance_ratio"
        ),
        scaled=pd.DataFrame(scaled, index=varying.index, columns=varying.columns),
        labels=suffix_codes(varying.index, suffix_labels),
        dropped_sites=dropped,
    )
