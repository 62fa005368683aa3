"""Configuration management for the numt-dilution pipeline."""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .exceptions import ConfigurationError


@dataclass
class FilterConfig:
    """Site filtering and subsampling parameters."""
    cutoff: float = 0.01
    snp_no: int = 200


@dataclass
class ModelConfig:
    """Model fitting parameters."""
    slope_threshold: float = 0.7
    reml: bool = True


@dataclass
class CohortConfig:
    """Sequencing-technology cohort membership.

    Individuals listed in ``older_members`` belong to the older cohort,
    every other individual to the newer one.
    """
    older_members: List[str] = field(default_factory=list)


@dataclass
class PCAConfig:
    """Labelling of individuals in the residual PCA."""
    suffix_labels: Optional[Dict[str, str]] = None


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    run_id: str = "numt_run"
    seed: int = 1
    filter: FilterConfig = field(default_factory=FilterConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    cohorts: CohortConfig = field(default_factory=CohortConfig)
    pca: PCAConfig = field(default_factory=PCAConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        """Build a configuration from a nested mapping, applying defaults."""
        try:
            cohorts = dict(data.get('cohorts') or {})
            if 'older_members' in cohorts:
                cohorts['older_members'] = [str(member) for member in cohorts['older_members']]
            return cls(
                run_id=str(data.get('run_id', "numt_run")),
                seed=int(data.get('seed', 1)),
                filter=FilterConfig(**(data.get('filter') or {})),
                model=ModelConfig(**(data.get('model') or {})),
                cohorts=CohortConfig(**cohorts),
                pca=PCAConfig(**(data.get('pca') or {})),
            )
        except TypeError as exc:
            raise ConfigurationError(f"Invalid configuration section: {exc}") from exc

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)

    def config_hash(self) -> str:
        """Compute deterministic hash of configuration."""
        config_str = json.dumps(self.to_dict(), sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]


def load_config(path: str | Path) -> PipelineConfig:
    """Load configuration from YAML file."""
    with open(path, 'r') as f:
        data = yaml.safe_load(f) or {}

    return PipelineConfig.from_dict(data)


def dump_config(config: PipelineConfig, path: str | Path) -> None:
    """Save configuration to YAML file."""
    with open(path, 'w') as f:
        yaml.safe_dump(config.to_dict(), f, default_flow_style=False)
