"""End-to-end numt proportion pipeline.

Stages pass an immutable ``PipelineContext`` forward; each stage returns a
new context with its own artifact filled in and never edits an earlier
one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from .bounds import BoundEstimate, estimate_bounds
from .config import PipelineConfig
from .logging_config import PerformanceLogger
from .matrix import Dataset, SiteMatrices, build_matrices
from .regression import NEWER, CohortFit, fit_cohort_intercepts, intercept_range, regression_frame
from .residuals import ResidualFit, ResidualPCA, fit_residual_glm, residual_matrix, residual_pca
from .rng import choose_rng
from .slopes import SlopeFit, classify_outliers, drop_outliers, fit_site_slopes
from .subsample import SubsampledDataset, subsample_sites
from .utils import PipelineIO, environment_snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineContext:
    """Artifacts produced so far in one run."""

    config: PipelineConfig
    rng: np.random.Generator
    dataset: Dataset
    matrices: Optional[SiteMatrices] = None
    subsample: Optional[SubsampledDataset] = None
    rows: Optional[pd.DataFrame] = None
    cohort_fit: Optional[CohortFit] = None
    slope_fit: Optional[SlopeFit] = None
    rogue: Optional[pd.Series] = None
    cleaned_rows: Optional[pd.DataFrame] = None
    bounds: Optional[BoundEstimate] = None
    residual_fit: Optional[ResidualFit] = None
    residuals: Optional[pd.DataFrame] = None
    pca: Optional[ResidualPCA] = None


@dataclass(frozen=True)
class PipelineResult:
    """Outputs handed to reporting and plotting collaborators."""

    run_id: str
    seed: int
    config_hash: str
    subsample: SubsampledDataset
    cohort_fit: CohortFit
    min_intercept: float
    max_intercept: float
    slope_fit: SlopeFit
    rogue: pd.Series
    bounds: BoundEstimate
    residual_fit: ResidualFit
    residual_matrix: pd.DataFrame
    pca: ResidualPCA

    def site_slopes(self) -> pd.DataFrame:
        """Per-site slope table with the rogue flag."""
        table = self.slope_fit.sites.copy()
        table["rogue"] = table["SNP"].map(self.rogue).astype(bool)
        return table

    def summary(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "seed": self.seed,
            "config_hash": self.config_hash,
            "n_individuals": len(self.subsample.individuals),
            "n_sites": len(self.subsample.sites),
            "min_intercept": self.min_intercept,
            "max_intercept": self.max_intercept,
            "n_rogue": int(self.rogue.sum()),
            "rogue_sites": list(self.rogue.index[self.rogue.to_numpy(dtype=bool)]),
            "slope_random_effect_variance": self.slope_fit.random_effect_variance,
            "bounds": self.bounds.to_dict(),
            "residual_deviance": self.residual_fit.deviance,
            "explained_variance_ratio": self.pca.explained_variance_ratio.to_dict(),
        }


def build_stage(ctx: PipelineContext) -> PipelineContext:
    return replace(ctx, matrices=build_matrices(ctx.dataset))


def subsample_stage(ctx: PipelineContext) -> PipelineContext:
    filter_cfg = ctx.config.filter
    subsample = subsample_sites(
        ctx.dataset,
        ctx.rng,
        cutoff=filter_cfg.cutoff,
        snp_no=filter_cfg.snp_no,
        matrices=ctx.matrices,
    )
    rows = regression_frame(subsample.dataset, ctx.config.cohorts.older_members)
    return replace(ctx, subsample=subsample, rows=rows)


def cohort_stage(ctx: PipelineContext) -> PipelineContext:
    return replace(ctx, cohort_fit=fit_cohort_intercepts(ctx.rows))


def slope_stage(ctx: PipelineContext) -> PipelineContext:
    model_cfg = ctx.config.model
    slope_fit = fit_site_slopes(ctx.rows, reml=model_cfg.reml)
    rogue = classify_outliers(slope_fit.slopes, model_cfg.slope_threshold)
    return replace(ctx, slope_fit=slope_fit, rogue=rogue, cleaned_rows=drop_outliers(ctx.rows, rogue))


def bounds_stage(ctx: PipelineContext) -> PipelineContext:
    newer = ctx.cleaned_rows[ctx.cleaned_rows["cohort"] == NEWER]
    return replace(ctx, bounds=estimate_bounds(newer, reml=ctx.config.model.reml))


def residual_stage(ctx: PipelineContext) -> PipelineContext:
    newer = ctx.cleaned_rows[ctx.cleaned_rows["cohort"] == NEWER]
    fit = fit_residual_glm(newer)
    present = set(newer["individual"])
    individuals = [ind for ind in ctx.dataset.individuals if ind in present]
    matrix = residual_matrix(fit, individuals=individuals, sites=list(ctx.bounds.cvals.index))
    pca = residual_pca(matrix, suffix_labels=ctx.config.pca.suffix_labels)
    return replace(ctx, residual_fit=fit, residuals=matrix, pca=pca)


STAGES = (
    ("matrix build", build_stage),
    ("subsample", subsample_stage),
    ("cohort regression", cohort_stage),
    ("slope model", slope_stage),
    ("bounded estimate", bounds_stage),
    ("residual analysis", residual_stage),
)


def run_pipeline(
    frame: pd.DataFrame,
    config: PipelineConfig,
    rng: Optional[np.random.Generator] = None
) -> PipelineResult:
    """Run every stage on one observation table.

    Args:
        frame: Observation table with the ``OBSERVATION_COLUMNS``
        config: Pipeline configuration
        rng: Generator for the site draw, seeded from ``config.seed`` when omitted

    Returns:
        ``PipelineResult`` with every stage's output
    """
    if rng is None:
        rng = choose_rng(config.seed).generator

    ctx = PipelineContext(config=config, rng=rng, dataset=Dataset.from_frame(frame))
    logger.info(
        f"Run {config.run_id} (config {config.config_hash()}): "
        f"{len(ctx.dataset.individuals)} individuals x {len(ctx.dataset.sites)} sites"
    )
    for name, stage in STAGES:
        with PerformanceLogger(logger, f"stage '{name}'"):
            ctx = stage(ctx)

    min_intercept, max_intercept = intercept_range(ctx.cohort_fit, NEWER)
    return PipelineResult(
        run_id=config.run_id,
        seed=config.seed,
        config_hash=config.config_hash(),
        subsample=ctx.subsample,
        cohort_fit=ctx.cohort_fit,
        min_intercept=min_intercept,
        max_intercept=max_intercept,
        slope_fit=ctx.slope_fit,
        rogue=ctx.rogue,
        bounds=ctx.bounds,
        residual_fit=ctx.residual_fit,
        residual_matrix=ctx.residuals,
        pca=ctx.pca,
    )


def write_artifacts(result: PipelineResult, config: PipelineConfig, out_dir: Path) -> Dict[str, Path]:
    """Persist a finished run as parquet tables and JSON summaries."""
    io = PipelineIO(out_dir)
    variance = pd.DataFrame({
        "component": result.pca.explained_variance.index,
        "explained_variance": result.pca.explained_variance.to_numpy(),
        "explained_variance_ratio": result.pca.explained_variance_ratio.to_numpy(),
    })
    paths = {
        "site_table": io.write_parquet("site_table", result.subsample.site_table.reset_index()),
        "cohort_intercepts": io.write_parquet("cohort_intercepts", result.cohort_fit.intercepts),
        "site_slopes": io.write_parquet("site_slopes", result.site_slopes()),
        "bound_intercepts": io.write_parquet("bound_intercepts", result.bounds.site_table()),
        "residual_matrix": io.write_parquet("residual_matrix", result.residual_matrix.reset_index()),
        "pca_scores": io.write_parquet("pca_scores", result.pca.scores_frame()),
        "pca_variance": io.write_parquet("pca_variance", variance),
        "summary": io.write_json("summary", result.summary()),
        "run_context": io.write_json("run_context", {
            "run_id": config.run_id,
            "seed": config.seed,
            "config_hash": config.config_hash(),
            "config": config.to_dict(),
            "environment": environment_snapshot(),
        }),
    }
    logger.info(f"Wrote {len(paths)} artifacts to {io.base_dir}")
    return paths
