"""Site frequency filtering and frequency-weighted subsampling."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from .exceptions import InsufficientEligibleSitesError, ValidationError
from .logging_config import time_it
from .matrix import Dataset, SiteMatrices, build_matrices

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubsampledDataset:
    """Dataset restricted to the drawn sites.

    ``site_table`` keeps the pre-draw ``alt_fraction``, ``eligible`` and
    ``weight`` of every original site; ``draw_order`` lists the drawn
    sites in the order they were selected.
    """

    dataset: Dataset
    site_table: pd.DataFrame
    draw_order: Tuple[str, ...]

    @property
    def sites(self) -> Tuple[str, ...]:
        return self.dataset.sites

    @property
    def individuals(self) -> Tuple[str, ...]:
        return self.dataset.individuals

    @property
    def frame(self) -> pd.DataFrame:
        return self.dataset.frame


def site_frequencies(matrices: SiteMatrices) -> pd.Series:
    """Pooled alternate allele fraction per site.

    The value is NaN only when both allele counts are zero for the site
    across all individuals.
    """
    totals = matrices.site_totals()
    depth = totals["alt"] + totals["main"]
    fraction = (totals["alt"] / depth.where(depth > 0)).astype(float)
    return fraction.rename("alt_fraction")


def eligibility_weights(matrices: SiteMatrices, cutoff: float = 0.01) -> pd.DataFrame:
    """Sampling weight per site: ``alt_fraction`` for eligible sites, else zero."""
    fraction = site_frequencies(matrices)
    polymorphic = matrices.site_polymorphism()
    eligible = (~polymorphic) & (fraction > cutoff)
    weight = fraction.where(eligible, 0.0)
    return pd.DataFrame({
        "alt_fraction": fraction,
        "polymorphic": polymorphic,
        "eligible": eligible,
        "weight": weight,
    })


def weighted_sample_without_replacement(
    weights: np.ndarray,
    size: int,
    rng: np.random.Generator
) -> np.ndarray:
    """Draw ``size`` distinct indices, each draw proportional to the remaining weight.

    Args:
        weights: Non-negative sampling weights
        size: Number of indices to draw
        rng: Seeded random number generator

    Returns:
        Indices in the order they were drawn

    Raises:
        InsufficientEligibleSitesError: If fewer than ``size`` weights are nonzero
    """
    remaining = np.asarray(weights, dtype=float).copy()
    if remaining.ndim != 1:
        raise ValidationError("weights must be one-dimensional")
    if not np.isfinite(remaining).all() or (remaining < 0).any():
        raise ValidationError("weights must be finite and non-negative")

    n_available = int(np.count_nonzero(remaining))
    if size > n_available:
        raise InsufficientEligibleSitesError(
            f"requested {size} sites but only {n_available} carry nonzero weight",
            {"requested": size, "available": n_available},
        )

    drawn = np.empty(size, dtype=np.int64)
    for i in range(size):
        probabilities = remaining / remaining.sum()
        choice = rng.choice(len(remaining), p=probabilities)
        drawn[i] = choice
        remaining[choice] = 0.0
    return drawn


@time_it("weighted site subsampling")
def subsample_sites(
    dataset: Dataset,
    rng: np.random.Generator,
    cutoff: float = 0.01,
    snp_no: int = 200,
    matrices: Optional[SiteMatrices] = None
) -> SubsampledDataset:
    """Filter sites by frequency and draw a frequency-weighted subsample.

    Args:
        dataset: Full observation dataset
        rng: Seeded random number generator, the only source of randomness
        cutoff: Minimum pooled alternate allele fraction for eligibility
        snp_no: Number of sites to draw
        matrices: Pre-built matrices for ``dataset``, rebuilt when omitted

    Returns:
        ``SubsampledDataset`` whose site index holds only the drawn sites
    """
    if matrices is None:
        matrices = build_matrices(dataset)

    table = eligibility_weights(matrices, cutoff)
    logger.info(
        f"{int(table['eligible'].sum())} of {len(table)} sites eligible "
        f"(cutoff={cutoff}, {int(table['polymorphic'].sum())} polymorphic)"
    )

    drawn = weighted_sample_without_replacement(table["weight"].to_numpy(), snp_no, rng)
    draw_order = tuple(table.index[drawn])
    chosen = set(draw_order)
    kept_sites = tuple(site for site in dataset.sites if site in chosen)

    return SubsampledDataset(
        dataset=dataset.restrict_sites(kept_sites),
        site_table=table,
        draw_order=draw_order,
    )
