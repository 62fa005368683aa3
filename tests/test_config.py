"""
Tests for configuration loading and hashing.
"""

import pytest

from numt_dilution.config import PipelineConfig, dump_config, load_config
from numt_dilution.exceptions import ConfigurationError


class TestPipelineConfig:
    """Test PipelineConfig construction."""

    def test_defaults(self):
        config = PipelineConfig()
        assert config.filter.cutoff == 0.01
        assert config.filter.snp_no == 200
        assert config.model.slope_threshold == 0.7
        assert config.model.reml is True
        assert config.cohorts.older_members == []
        assert config.pca.suffix_labels is None

    def test_from_dict_coerces_members(self):
        config = PipelineConfig.from_dict({
            "run_id": "r1",
            "seed": 3,
            "cohorts": {"older_members": [101, "ind002"]},
            "filter": {"snp_no": 50},
        })
        assert config.cohorts.older_members == ["101", "ind002"]
        assert config.filter.snp_no == 50
        assert config.filter.cutoff == 0.01

    def test_unknown_section_key(self):
        with pytest.raises(ConfigurationError):
            PipelineConfig.from_dict({"filter": {"bogus": 1}})

    def test_config_hash(self):
        """Hash is stable and tracks every parameter."""
        a = PipelineConfig(run_id="r", seed=1)
        b = PipelineConfig(run_id="r", seed=1)
        assert a.config_hash() == b.config_hash()
        assert len(a.config_hash()) == 16

        b.model.slope_threshold = 0.5
        assert a.config_hash() != b.config_hash()

    def test_yaml_round_trip(self, temp_dir):
        config = PipelineConfig.from_dict({
            "run_id": "yaml_run",
            "seed": 9,
            "cohorts": {"older_members": ["ind000A"]},
            "pca": {"suffix_labels": {"A": "kit-1"}},
        })
        path = temp_dir / "config.yaml"
        dump_config(config, path)
        loaded = load_config(path)
        assert loaded == config
        assert loaded.config_hash() == config.config_hash()

    def test_load_empty_file(self, temp_dir):
        path = temp_dir / "empty.yaml"
        path.write_text("")
        assert load_config(path) == PipelineConfig()
