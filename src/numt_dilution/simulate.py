"""Simulation of per-site read counts under the numt dilution law."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .matrix import OBSERVATION_COLUMNS

SUFFIXES = "ABC"


@dataclass(frozen=True)
class SimulatedData:
    """Simulated observations together with the values used to generate them."""

    frame: pd.DataFrame
    c: float
    numt_frequencies: pd.Series
    rogue_sites: List[str]
    polymorphic_sites: List[str]
    older_members: List[str]

    def expected_intercepts(self) -> pd.Series:
        """``log(p_n * c / (1 - c))`` per conforming site, the exact-law intercept."""
        conforming = self.numt_frequencies.drop(self.rogue_sites)
        return np.log(conforming * self.c / (1 - self.c))


def simulate_observations(
    rng: np.random.Generator,
    n_individuals: int = 30,
    n_sites: int = 40,
    c: float = 0.01,
    numt_frequency_range: Tuple[float, float] = (0.1, 0.5),
    mito_ratio_range: Tuple[float, float] = (0.005, 0.2),
    depth: int = 5000,
    individual_sd: float = 0.1,
    n_rogue: int = 0,
    rogue_frequency: float = 0.1,
    n_polymorphic: int = 0,
    n_older: int = 0,
    numt_frequencies: Optional[Sequence[float]] = None,
) -> SimulatedData:
    """Simulate counts for ``n_individuals`` x ``n_sites`` observations.

    Each individual carries a mitochondrial-to-nuclear read ratio ``r``.
    The mitochondria-like read fraction is ``(c + r) / (1 + r)`` and the
    numt share of those reads is ``c / (c + r)``, so a numt allele at
    frequency ``p_n`` is observed at ``p_n * c / (c + r)``. Rogue sites
    ignore the dilution and sit at ``rogue_frequency`` in every
    individual. Individual-level variation enters as a lognormal factor
    shared by all sites of that individual.

    Args:
        rng: Seeded random number generator
        n_individuals: Number of individuals
        n_sites: Number of sites
        c: True numt proportion
        numt_frequency_range: Uniform range of per-site numt allele frequencies
        mito_ratio_range: Uniform range of the per-individual ratio ``r``
        depth: Mean mitochondria-like read depth per observation
        individual_sd: Standard deviation of the per-individual log factor
        n_rogue: Number of sites (the first ones) whose frequency ignores depth
        rogue_frequency: Observed frequency at rogue sites
        n_polymorphic: Number of sites (the last ones) flagged polymorphic
        n_older: Number of individuals (the first ones) in the older cohort
        numt_frequencies: Explicit per-site numt frequencies

    Returns:
        ``SimulatedData`` with the observation frame and generating values
    """
    individuals = [f"ind{i:03d}{SUFFIXES[i % len(SUFFIXES)]}" for i in range(n_individuals)]
    sites = [f"snp{j:04d}" for j in range(n_sites)]

    if numt_frequencies is None:
        p_n = rng.uniform(*numt_frequency_range, size=n_sites)
    else:
        p_n = np.asarray(numt_frequencies, dtype=float)
        if p_n.shape != (n_sites,):
            raise ValueError("numt_frequencies must have one value per site")

    ratio = rng.uniform(*mito_ratio_range, size=n_individuals)
    map_depth = (c + ratio) / (1 + ratio)
    numt_share = c / (c + ratio)
    individual_factor = np.exp(rng.normal(0.0, individual_sd, size=n_individuals))

    freq = np.outer(numt_share, p_n)
    freq[:, :n_rogue] = rogue_frequency
    freq = np.clip(freq * individual_factor[:, None], 0.0, 0.999)

    total = rng.poisson(depth, size=(n_individuals, n_sites))
    alt = rng.binomial(total, freq)

    polymorphic = np.zeros(n_sites, dtype=bool)
    if n_polymorphic:
        polymorphic[-n_polymorphic:] = True

    frame = pd.DataFrame({
        "individual": np.repeat(individuals, n_sites),
        "SNP": np.tile(sites, n_individuals),
        "mapDep": np.repeat(map_depth, n_sites),
        "alt": alt.ravel(),
        "main": (total - alt).ravel(),
        "polymorphic": np.tile(polymorphic, n_individuals),
    })[OBSERVATION_COLUMNS]

    return SimulatedData(
        frame=frame,
        c=c,
        numt_frequencies=pd.Series(p_n, index=pd.Index(sites, name="SNP"), name="numt_frequency"),
        rogue_sites=sites[:n_rogue],
        polymorphic_sites=[site for site, flag in zip(sites, polymorphic) if flag],
        older_members=individuals[:n_older],
    )
