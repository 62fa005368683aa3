"""Schema validators for pipeline frames."""

from __future__ import annotations

import polars as pl
from dataclasses import dataclass
import pandas as pd

from ..exceptions import ValidationError


@dataclass(frozen=True)
class Schema:
    name: str
    schema: pl.Schema

    def validate(self, frame: pd.DataFrame) -> None:
        missing = [column for column in self.schema.names() if column not in frame.columns]
        if missing:
            msg = f"{self.name} schema validation failed: missing columns {missing}"
            raise ValidationError(msg, {"missing": missing})
        try:
            pl.DataFrame(frame[self.schema.names()]).cast(self.schema)
        except Exception as exc:  # pragma: no cover - polars details vary
            msg = f"{self.name} schema validation failed: {exc}"
            raise ValidationError(msg) from exc


OBSERVATION_SCHEMA = Schema(
    name="observations",
    schema=pl.Schema(
        {
            "individual": pl.Utf8,
            "SNP": pl.Utf8,
            "mapDep": pl.Float64,
            "alt": pl.Int64,
            "main": pl.Int64,
            "polymorphic": pl.Boolean,
        }
    ),
)

REGRESSION_INPUT_SCHEMA = Schema(
    name="regression_input",
    schema=pl.Schema(
        {
            "individual": pl.Utf8,
            "SNP": pl.Utf8,
            "cohort": pl.Utf8,
            "x": pl.Float64,
            "y": pl.Float64,
            "alt": pl.Int64,
            "main": pl.Int64,
        }
    ),
)

SITE_FIT_SCHEMA = Schema(
    name="site_fit",
    schema=pl.Schema(
        {
            "SNP": pl.Utf8,
            "intercept": pl.Float64,
        }
    ),
)
