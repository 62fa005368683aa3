"""
Test configuration and fixtures for numt-dilution tests.
"""

import shutil
import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from numt_dilution.matrix import Dataset
from numt_dilution.regression import regression_frame
from numt_dilution.simulate import simulate_observations


@pytest.fixture
def seed():
    """Fixed random seed for reproducible tests."""
    return 42


@pytest.fixture
def temp_dir():
    """Temporary directory for test outputs."""
    temp_dir = tempfile.mkdtemp()
    yield Path(temp_dir)
    shutil.rmtree(temp_dir)


@pytest.fixture
def scenario_frame():
    """Three individuals by two sites with constant mapDep."""
    return pd.DataFrame({
        "individual": ["i1", "i1", "i2", "i2", "i3", "i3"],
        "SNP": ["s1", "s2", "s1", "s2", "s1", "s2"],
        "mapDep": [0.5] * 6,
        "alt": [1, 0, 2, 0, 3, 1],
        "main": [9, 10, 8, 10, 7, 9],
        "polymorphic": [False] * 6,
    })


@pytest.fixture
def scenario_dataset(scenario_frame):
    return Dataset.from_frame(scenario_frame)


@pytest.fixture
def simulated():
    """Newer-cohort-only counts with two depth-independent (rogue) sites."""
    return simulate_observations(
        np.random.default_rng(7),
        n_individuals=30,
        n_sites=12,
        c=0.01,
        n_rogue=2,
    )


@pytest.fixture
def simulated_rows(simulated):
    return regression_frame(Dataset.from_frame(simulated.frame), simulated.older_members)


@pytest.fixture
def exact_rows():
    """Regression rows that follow ``y = x + cohort effect + site effect`` exactly."""
    cohort_effect = {"older": -1.0, "newer": -0.5}
    site_effect = {"s0": 0.0, "s1": -0.3, "s2": 0.4}
    rows = []
    for i in range(10):
        individual = f"ind{i}"
        cohort = "older" if i < 4 else "newer"
        x = 1.0 + 0.35 * i
        for site, effect in site_effect.items():
            rows.append({
                "individual": individual,
                "SNP": site,
                "cohort": cohort,
                "x": x,
                "y": x + cohort_effect[cohort] + effect,
                "alt": 10,
                "main": 90,
            })
    frame = pd.DataFrame(rows)
    return frame, cohort_effect, site_effect
