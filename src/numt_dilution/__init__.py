"""numt-dilution: numt proportion estimates from allele frequency dilution."""

from __future__ import annotations

__version__ = "0.1.0"

# Pipeline stages
from .matrix import Dataset, SiteMatrices, build_matrices
from .subsample import SubsampledDataset, subsample_sites, site_frequencies
from .regression import CohortFit, fit_cohort_intercepts, intercept_range, regression_frame
from .slopes import SlopeFit, classify_outliers, fit_site_slopes
from .bounds import BoundEstimate, estimate_bounds
from .residuals import ResidualPCA, fit_residual_glm, residual_matrix, residual_pca

# Orchestration and configuration
from .pipeline import PipelineResult, run_pipeline, write_artifacts
from .config import PipelineConfig, load_config, dump_config
from .rng import choose_rng
from .simulate import simulate_observations

__all__ = [
    "__version__",
    # Stages
    "Dataset",
    "SiteMatrices",
    "build_matrices",
    "SubsampledDataset",
    "subsample_sites",
    "site_frequencies",
    "CohortFit",
    "fit_cohort_intercepts",
    "intercept_range",
    "regression_frame",
    "SlopeFit",
    "classify_outliers",
    "fit_site_slopes",
    "BoundEstimate",
    "estimate_bounds",
    "ResidualPCA",
    "fit_residual_glm",
    "residual_matrix",
    "residual_pca",
    # Pipeline
    "PipelineResult",
    "run_pipeline",
    "write_artifacts",
    # Configuration
    "PipelineConfig",
    "load_config",
    "dump_config",
    "choose_rng",
    "simulate_observations",
]
