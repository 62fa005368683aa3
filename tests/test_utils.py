"""Tests for artifact persistence and logging helpers."""

import json
import logging

import numpy as np
import pandas as pd
import pytest

from numt_dilution.logging_config import (
    PerformanceLogger,
    get_logger,
    log_system_info,
    setup_logging,
    time_it,
)
from numt_dilution.utils import ARTIFACT_FILENAMES, PipelineIO, as_json_ready, environment_snapshot


class TestPipelineIO:
    """Test deterministic artifact paths."""

    def test_known_keys(self, temp_dir):
        io = PipelineIO(temp_dir / "out")
        assert io.path("summary") == temp_dir / "out" / ARTIFACT_FILENAMES["summary"]
        with pytest.raises(KeyError):
            io.path("unknown")

    def test_parquet_round_trip(self, temp_dir):
        io = PipelineIO(temp_dir)
        frame = pd.DataFrame({"SNP": ["a", "b"], "intercept": [-1.0, -2.5]})
        io.write_parquet("bound_intercepts", frame)
        pd.testing.assert_frame_equal(io.read_parquet("bound_intercepts"), frame)

    def test_json_payload_is_cleaned(self, temp_dir):
        io = PipelineIO(temp_dir)
        io.write_json("summary", {"n": np.int64(3), "value": np.float64("nan"), "flag": np.bool_(True)})
        assert io.read_json("summary") == {"n": 3, "value": None, "flag": True}


def test_as_json_ready_nested():
    payload = {
        "series": pd.Series({"PC1": np.float64(0.5)}),
        "frame": pd.DataFrame({"a": [np.int64(1)]}),
        "items": (np.float32(1.5), float("nan")),
    }
    converted = as_json_ready(payload)
    assert converted == {"series": {"PC1": 0.5}, "frame": [{"a": 1}], "items": [1.5, None]}
    json.dumps(converted)


def test_environment_snapshot_keys():
    snapshot = environment_snapshot()
    for key in ("python", "numpy", "pandas", "statsmodels", "scikit-learn", "git_sha"):
        assert key in snapshot


class TestLogging:
    """Test logging helpers."""

    def test_setup_logging_writes_file(self, temp_dir):
        log_file = temp_dir / "run.log"
        logger = setup_logging(level="DEBUG", log_file=str(log_file), console_output=False)
        try:
            assert logger is get_logger()
            logger.info("hello from the pipeline")
            log_system_info(logger)
            for handler in logger.handlers:
                handler.flush()
            text = log_file.read_text()
            assert "hello from the pipeline" in text
            assert "statsmodels" in text
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)
            logger.propagate = True
            logger.setLevel(logging.NOTSET)

    def test_performance_logger(self, caplog):
        logger = logging.getLogger("numt_dilution.test")
        with caplog.at_level(logging.INFO, logger="numt_dilution.test"):
            with PerformanceLogger(logger, "unit of work"):
                pass
        assert "unit of work" in caplog.text

    def test_time_it_preserves_result(self):
        @time_it("addition")
        def add(a, b):
            return a + b

        assert add(2, 3) == 5
        assert add.__name__ == "add"
