"""Reshaping of per-(individual, site) observations into individual x site matrices."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Tuple

import numpy as np
import pandas as pd

from .exceptions import InconsistentFlagError, ShapeMismatchError, ValidationError
from .schemas import OBSERVATION_SCHEMA

logger = logging.getLogger(__name__)

OBSERVATION_COLUMNS = ["individual", "SNP", "mapDep", "alt", "main", "polymorphic"]


@dataclass(frozen=True)
class Dataset:
    """Observations with the order-preserving individual and site indexes."""

    frame: pd.DataFrame
    individuals: Tuple[str, ...]
    sites: Tuple[str, ...]

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "Dataset":
        """Validate and normalise a raw observation frame.

        Identifiers are coerced to strings so that cohort membership can be
        matched against configuration values regardless of how the table
        was parsed.
        """
        missing = [c for c in OBSERVATION_COLUMNS if c in frame.columns and frame[c].isna().any()]
        if missing:
            raise ValidationError(f"observations have missing values in {missing}", {"columns": missing})
        OBSERVATION_SCHEMA.validate(frame)

        data = pd.DataFrame({
            "individual": frame["individual"].astype(str).to_numpy(),
            "SNP": frame["SNP"].astype(str).to_numpy(),
            "mapDep": frame["mapDep"].astype(float).to_numpy(),
            "alt": frame["alt"].astype(np.int64).to_numpy(),
            "main": frame["main"].astype(np.int64).to_numpy(),
            "polymorphic": frame["polymorphic"].astype(bool).to_numpy(),
        })

        if ((data["mapDep"] < 0) | (data["mapDep"] > 1)).any():
            raise ValidationError("mapDep must lie in [0, 1]")
        if ((data["alt"] < 0) | (data["main"] < 0)).any():
            raise ValidationError("alt and main counts must be non-negative")

        individuals = tuple(pd.unique(data["individual"]))
        sites = tuple(pd.unique(data["SNP"]))
        return cls(frame=data, individuals=individuals, sites=sites)

    def restrict_sites(self, sites: Iterable[str]) -> "Dataset":
        """Return a new dataset holding only ``sites``, in the given order."""
        keep = tuple(sites)
        unknown = sorted(set(keep) - set(self.sites))
        if unknown:
            raise ValidationError(f"unknown sites requested: {unknown[:5]}", {"unknown": unknown})
        subset = self.frame[self.frame["SNP"].isin(keep)].reset_index(drop=True)
        return Dataset(frame=subset, individuals=self.individuals, sites=keep)

    def __len__(self) -> int:
        return len(self.frame)


@dataclass(frozen=True)
class SiteMatrices:
    """N x M count and flag matrices; rows follow individuals, columns sites."""

    individuals: Tuple[str, ...]
    sites: Tuple[str, ...]
    alt: np.ndarray
    main: np.ndarray
    polymorphic: np.ndarray
    map_depth: np.ndarray

    @property
    def shape(self) -> Tuple[int, int]:
        return self.alt.shape

    def site_totals(self) -> pd.DataFrame:
        """Column sums of the alternate and main allele counts."""
        return pd.DataFrame(
            {"alt": self.alt.sum(axis=0), "main": self.main.sum(axis=0)},
            index=pd.Index(self.sites, name="SNP"),
        )

    def site_polymorphism(self) -> pd.Series:
        """Per-site polymorphism flag (constant down each column)."""
        return pd.Series(self.polymorphic[0, :], index=pd.Index(self.sites, name="SNP"), name="polymorphic")


def build_matrices(dataset: Dataset) -> SiteMatrices:
    """Reshape a dataset into individual x site matrices.

    Args:
        dataset: Validated observations

    Returns:
        ``SiteMatrices`` with ``alt``, ``main``, ``polymorphic`` and
        ``map_depth`` arrays of shape (N, M)

    Raises:
        ShapeMismatchError: If any (individual, site) pair is missing or duplicated
        InconsistentFlagError: If a site's polymorphism flag varies by individual
    """
    frame = dataset.frame
    n_ind, n_sites = len(dataset.individuals), len(dataset.sites)
    if n_ind == 0 or n_sites == 0:
        raise ShapeMismatchError("dataset holds no observations")

    duplicated = frame.duplicated(["individual", "SNP"], keep=False)
    if duplicated.any():
        pairs = frame.loc[duplicated, ["individual", "SNP"]].drop_duplicates()
        raise ShapeMismatchError(
            f"{len(pairs)} (individual, site) pairs appear more than once",
            {"duplicated": list(map(tuple, pairs.head(10).to_numpy()))},
        )
    if len(frame) != n_ind * n_sites:
        raise ShapeMismatchError(
            f"expected {n_ind} x {n_sites} = {n_ind * n_sites} observations, found {len(frame)}",
            {"n_individuals": n_ind, "n_sites": n_sites, "n_observations": len(frame)},
        )

    rows = pd.Categorical(frame["individual"], categories=list(dataset.individuals)).codes
    cols = pd.Categorical(frame["SNP"], categories=list(dataset.sites)).codes
    if (rows < 0).any() or (cols < 0).any():
        raise ShapeMismatchError("observations reference individuals or sites outside the dataset index")

    def _fill(column: str, dtype) -> np.ndarray:
        matrix = np.zeros((n_ind, n_sites), dtype=dtype)
        matrix[rows, cols] = frame[column].to_numpy(dtype=dtype)
        return matrix

    alt = _fill("alt", np.int64)
    main = _fill("main", np.int64)
    polymorphic = _fill("polymorphic", bool)
    map_depth = _fill("mapDep", float)

    constant = (polymorphic == polymorphic[0, :]).all(axis=0)
    if not constant.all():
        bad = [site for site, ok in zip(dataset.sites, constant) if not ok]
        raise InconsistentFlagError(
            f"polymorphic flag varies across individuals at {len(bad)} sites",
            {"sites": bad[:10]},
        )

    logger.debug(f"Built {n_ind} x {n_sites} site matrices")
    return SiteMatrices(
        individuals=dataset.individuals,
        sites=dataset.sites,
        alt=alt,
        main=main,
        polymorphic=polymorphic,
        map_depth=map_depth,
    )
