"""Design matrix helpers shared by the model fitting stages."""

from __future__ import annotations

from typing import List, Sequence

import numpy as np
import pandas as pd

from .exceptions import SingularFitError


def indicator_columns(
    values: pd.Series,
    levels: Sequence[str],
    prefix: str,
    drop_first: bool = False
) -> pd.DataFrame:
    """One float indicator column per level, named ``prefix[level]``.

    Levels absent from ``values`` still get a (zero) column so that a
    level without usable rows shows up as a rank deficiency.
    """
    categorical = pd.Series(pd.Categorical(values, categories=list(levels)), index=values.index)
    dummies = pd.get_dummies(categorical, dtype=float)
    dummies.columns = [f"{prefix}[{level}]" for level in dummies.columns]
    if drop_first:
        dummies = dummies.iloc[:, 1:]
    return dummies


def ensure_full_rank(exog: pd.DataFrame, label: str) -> None:
    """Raise ``SingularFitError`` when ``exog`` has dependent columns."""
    n_rows, n_cols = exog.shape
    matrix = exog.to_numpy(dtype=float)
    rank = int(np.linalg.matrix_rank(matrix)) if n_rows else 0
    if rank < n_cols:
        empty: List[str] = [name for name in exog.columns if not np.any(exog[name].to_numpy())]
        raise SingularFitError(
            f"{label} design is rank deficient (rank {rank} < {n_cols} columns, {n_rows} rows)",
            {"rank": rank, "n_columns": n_cols, "n_rows": n_rows, "empty_columns": empty[:10]},
        )


def site_levels(frame: pd.DataFrame) -> List[str]:
    """Sites in first-appearance order."""
    return list(pd.unique(frame["SNP"]))
