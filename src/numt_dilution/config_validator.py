"""
Configuration validation for the numt-dilution pipeline.

Checks a raw configuration mapping before it is turned into a
``PipelineConfig``, collecting errors and advisory warnings.
"""

from typing import Any, Dict, List, Tuple
import logging
from pathlib import Path

import yaml

from .exceptions import ConfigurationError


class ConfigValidator:
    """Validate configuration parameters for the pipeline."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.errors = []
        self.warnings = []

    def validate_config(self, config: Dict[str, Any]) -> Tuple[bool, List[str], List[str]]:
        """Validate complete configuration.

        Args:
            config: Configuration dictionary to validate

        Returns:
            Tuple of (is_valid, errors, warnings)
        """
        self.errors = []
        self.warnings = []

        required_keys = ['run_id', 'seed', 'cohorts']
        for key in required_keys:
            if key not in config:
                self.errors.append(f"Missing required configuration key: {key}")

        if 'filter' in config:
            self._validate_filter_config(config['filter'])

        if 'model' in config:
            self._validate_model_config(config['model'])

        if 'cohorts' in config:
            self._validate_cohort_config(config['cohorts'])

        if 'pca' in config:
            self._validate_pca_config(config['pca'])

        self._validate_general_config(config)

        for warning in self.warnings:
            self.logger.warning(warning)

        is_valid = len(self.errors) == 0
        return is_valid, self.errors, self.warnings

    def validate_or_raise(self, config: Dict[str, Any]) -> None:
        """Validate and raise ``ConfigurationError`` listing every problem."""
        is_valid, errors, warnings = self.validate_config(config)
        if not is_valid:
            raise ConfigurationError(
                "Invalid configuration: " + "; ".join(errors),
                {"errors": list(errors), "warnings": list(warnings)},
            )

    def _validate_filter_config(self, filter_config: Dict[str, Any]) -> None:
        """Validate site filter configuration."""
        if not isinstance(filter_config, dict):
            self.errors.append("filter must be a mapping")
            return

        if 'cutoff' in filter_config:
            cutoff = filter_config['cutoff']
            if isinstance(cutoff, bool) or not isinstance(cutoff, (int, float)):
                self.errors.append("filter.cutoff must be numeric")
            elif not 0.0 <= cutoff < 1.0:
                self.errors.append("filter.cutoff must be in [0.0, 1.0)")
            elif cutoff > 0.2:
                self.warnings.append(f"filter.cutoff is high ({cutoff}), few sites may remain eligible")

        if 'snp_no' in filter_config:
            snp_no = filter_config['snp_no']
            if isinstance(snp_no, bool) or not isinstance(snp_no, int):
                self.errors.append("filter.snp_no must be an integer")
            elif snp_no < 1:
                self.errors.append("filter.snp_no must be positive")
            elif snp_no < 10:
                self.warnings.append(f"filter.snp_no is low ({snp_no}), per-site fits may be unstable")

    def _validate_model_config(self, model_config: Dict[str, Any]) -> None:
        """Validate model configuration."""
        if not isinstance(model_config, dict):
            self.errors.append("model must be a mapping")
            return

        if 'slope_threshold' in model_config:
            threshold = model_config['slope_threshold']
            if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
                self.errors.append("model.slope_threshold must be numeric")
            elif threshold < 0:
                self.errors.append("model.slope_threshold cannot be negative")
            elif threshold > 1.0:
                self.warnings.append(
                    f"model.slope_threshold ({threshold}) exceeds the expected slope of 1; "
                    "conforming sites will be flagged"
                )

        if 'reml' in model_config and not isinstance(model_config['reml'], bool):
            self.errors.append("model.reml must be a boolean")

    def _validate_cohort_config(self, cohort_config: Dict[str, Any]) -> None:
        """Validate cohort membership."""
        if not isinstance(cohort_config, dict):
            self.errors.append("cohorts must be a mapping")
            return

        if 'older_members' not in cohort_config:
            self.errors.append("Missing cohorts.older_members")
            return

        members = cohort_config['older_members']
        if not isinstance(members, list):
            self.errors.append("cohorts.older_members must be a list of identifiers")
            return

        if len(members) == 0:
            self.warnings.append("cohorts.older_members is empty, every individual is in the newer cohort")
        seen = set()
        for member in members:
            key = str(member)
            if key in seen:
                self.errors.append(f"cohorts.older_members lists '{key}' more than once")
            seen.add(key)

    def _validate_pca_config(self, pca_config: Dict[str, Any]) -> None:
        """Validate PCA labelling."""
        if not isinstance(pca_config, dict):
            self.errors.append("pca must be a mapping")
            return

        labels = pca_config.get('suffix_labels')
        if labels is None:
            return
        if not isinstance(labels, dict):
            self.errors.append("pca.suffix_labels must be a mapping")
            return
        for code in labels:
            if not isinstance(code, str) or len(code) != 1:
                self.errors.append(f"pca.suffix_labels key '{code}' must be a single character")

    def _validate_general_config(self, config: Dict[str, Any]) -> None:
        """Validate general configuration parameters."""
        if 'run_id' in config:
            run_id = config['run_id']
            if not isinstance(run_id, str):
                self.errors.append("run_id must be a string")
            elif not run_id.strip():
                self.errors.append("run_id cannot be empty")
            elif not run_id.replace('_', '').replace('-', '').isalnum():
                self.warnings.append("run_id should contain only alphanumeric characters, dashes, and underscores")

        if 'seed' in config:
            seed = config['seed']
            if isinstance(seed, bool) or not isinstance(seed, int):
                self.errors.append("seed must be an integer")
            elif seed < 0:
                self.errors.append("seed must be non-negative")


def validate_config_file(config_path: Path) -> Tuple[bool, List[str], List[str]]:
    """Validate a configuration file.

    Args:
        config_path: Path to configuration YAML file

    Returns:
        Tuple of (is_valid, errors, warnings)

    Raises:
        ConfigurationError: If file cannot be read or parsed
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}") from e
    except (IOError, OSError) as e:
        raise ConfigurationError(f"Cannot read configuration file: {e}") from e

    if not isinstance(config, dict):
        raise ConfigurationError("Configuration file must contain a dictionary")

    validator = ConfigValidator()
    return validator.validate_config(config)
