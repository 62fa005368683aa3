"""Artifact persistence helpers."""

from __future__ import annotations

import json
import platform
import subprocess
import sys
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd


ARTIFACT_FILENAMES = {
    "site_table": "site_table.parquet",
    "cohort_intercepts": "cohort_intercepts.parquet",
    "site_slopes": "site_slopes.parquet",
    "bound_intercepts": "bound_intercepts.parquet",
    "residual_matrix": "residual_matrix.parquet",
    "pca_scores": "pca_scores.parquet",
    "pca_variance": "pca_variance.parquet",
    "summary": "summary.json",
    "run_context": "run_context.json",
}


class PipelineIO:
    """Helper for reading/writing artifacts with deterministic paths."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def path(self, key: str) -> Path:
        if key not in ARTIFACT_FILENAMES:
            msg = f"unknown artifact key: {key}"
            raise KeyError(msg)
        return self.base_dir / ARTIFACT_FILENAMES[key]

    def write_parquet(self, key: str, df: pd.DataFrame) -> Path:
        path = self.path(key)
        df.to_parquet(path, index=False)
        return path

    def read_parquet(self, key: str) -> pd.DataFrame:
        path = self.path(key)
        return pd.read_parquet(path)

    def write_json(self, key: str, payload: dict[str, Any]) -> Path:
        path = self.path(key)
        path.write_text(json.dumps(as_json_ready(payload), indent=2), encoding="utf-8")
        return path

    def read_json(self, key: str) -> dict[str, Any]:
        return json.loads(self.path(key).read_text(encoding="utf-8"))


def git_sha() -> str:
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            check=True,
            capture_output=True,
            text=True,
            timeout=5,
        )
        return result.stdout.strip()
    except (OSError, subprocess.SubprocessError):  # pragma: no cover - git may be unavailable
        return "unknown"


def environment_snapshot() -> dict[str, Any]:
    import sklearn
    import statsmodels

    return {
        "python": sys.version.split()[0],
        "platform": platform.platform(),
        "numpy": np.__version__,
        "pandas": pd.__version__,
        "statsmodels": statsmodels.__version__,
        "scikit-learn": sklearn.__version__,
        "git_sha": git_sha(),
    }


def as_json_ready(data: Any) -> Any:
    """Recursively convert numpy scalars, paths and frames to JSON-native values."""
    if isinstance(data, dict):
        return {str(key): as_json_ready(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [as_json_ready(item) for item in data]
    if isinstance(data, Path):
        return str(data)
    if isinstance(data, pd.DataFrame):
        return as_json_ready(data.to_dict(orient="records"))
    if isinstance(data, pd.Series):
        return as_json_ready(data.to_dict())
    if isinstance(data, np.bool_):
        return bool(data)
    if isinstance(data, np.integer):
        return int(data)
    if isinstance(data, np.floating):
        value = float(data)
        return None if np.isnan(value) else value
    if isinstance(data, float) and np.isnan(data):
        return None
    return data
