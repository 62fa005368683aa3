"""Tests for the residual GLM and residual PCA."""

import numpy as np
import pandas as pd
import pytest

from numt_dilution.exceptions import InsufficientDataError
from numt_dilution.residuals import (
    center_rows,
    fit_residual_glm,
    residual_matrix,
    residual_pca,
    suffix_codes,
)


@pytest.fixture
def conforming_rows(simulated, simulated_rows):
    return simulated_rows[~simulated_rows["SNP"].isin(simulated.rogue_sites)].reset_index(drop=True)


@pytest.fixture
def random_matrix():
    rng = np.random.default_rng(21)
    values = rng.normal(size=(12, 6))
    individuals = [f"ind{i:02d}{'AB'[i % 2]}" for i in range(12)]
    frame = pd.DataFrame(
        values,
        index=pd.Index(individuals, name="individual"),
        columns=[f"s{j}" for j in range(6)],
    )
    return center_rows(frame)


class TestResidualGLM:
    """Test the log-link binomial fit."""

    def test_residuals_are_observed_minus_fitted(self, conforming_rows):
        fit = fit_residual_glm(conforming_rows)
        residuals = fit.residuals
        assert fit.n_obs == len(conforming_rows)
        np.testing.assert_allclose(residuals["residual"], residuals["observed"] - residuals["fitted"])
        assert ((residuals["fitted"] > 0) & (residuals["fitted"] < 1)).all()
        assert np.isfinite(fit.deviance)

    def test_coefficients_track_dilution_law(self, simulated, conforming_rows):
        fit = fit_residual_glm(conforming_rows)
        expected = simulated.expected_intercepts()
        np.testing.assert_allclose(fit.coefficients[expected.index], expected, atol=0.1)

    def test_zero_alt_rows_are_kept(self, conforming_rows):
        rows = conforming_rows.copy()
        rows.loc[0, "alt"] = 0
        rows.loc[0, "y"] = np.nan
        fit = fit_residual_glm(rows)
        assert fit.n_obs == len(rows)
        first = fit.residuals.iloc[0]
        assert first["observed"] == 0.0
        assert np.isfinite(first["residual"])

    def test_rows_without_reads_are_skipped(self, conforming_rows):
        rows = conforming_rows.copy()
        rows.loc[0, ["alt", "main"]] = 0
        fit = fit_residual_glm(rows)
        assert fit.n_obs == len(rows) - 1


class TestResidualMatrix:
    """Test reshaping and row centring."""

    def test_rows_are_centred(self, conforming_rows):
        fit = fit_residual_glm(conforming_rows)
        matrix = residual_matrix(fit)
        assert matrix.shape == (30, 10)
        np.testing.assert_allclose(matrix.mean(axis=1), 0.0, atol=1e-12)

    def test_requested_order(self, conforming_rows):
        fit = fit_residual_glm(conforming_rows)
        sites = sorted(conforming_rows["SNP"].unique(), reverse=True)
        individuals = list(conforming_rows["individual"].unique())[::-1]
        matrix = residual_matrix(fit, individuals=individuals, sites=sites)
        assert list(matrix.columns) == sites
        assert list(matrix.index) == individuals

    def test_center_rows_ignores_missing(self):
        matrix = pd.DataFrame({"a": [1.0, 2.0], "b": [3.0, np.nan]}, index=["x", "y"])
        centred = center_rows(matrix)
        assert centred.loc["x"].tolist() == [-1.0, 1.0]
        assert centred.loc["y", "a"] == 0.0
        assert np.isnan(centred.loc["y", "b"])


class TestResidualPCA:
    """Test PCA of the residual matrix."""

    def test_variance_is_preserved(self, random_matrix):
        pca = residual_pca(random_matrix)
        total = pca.scaled.var(axis=0, ddof=1).sum()
        assert pca.explained_variance.sum() == pytest.approx(total)
        assert pca.explained_variance_ratio.sum() == pytest.approx(1.0)
        assert list(pca.scores.columns) == [f"PC{i + 1}" for i in range(6)]

    def test_recentring_gives_same_components(self, random_matrix):
        first = residual_pca(random_matrix)
        second = residual_pca(center_rows(random_matrix))
        informative = first.explained_variance > 1e-8
        for name in first.components.index[informative]:
            alignment = abs(np.dot(first.components.loc[name], second.components.loc[name]))
            assert alignment == pytest.approx(1.0, abs=1e-6)

    def test_scores_carry_suffix_groups(self, random_matrix):
        pca = residual_pca(random_matrix, suffix_labels={"A": "kit-a"})
        frame = pca.scores_frame()
        assert frame.columns[:2].tolist() == ["individual", "group"]
        assert set(frame["group"]) == {"kit-a", "B"}

    def test_constant_and_missing_sites_are_dropped(self, random_matrix):
        matrix = random_matrix.copy()
        matrix["flat"] = 0.0
        matrix.iloc[0, 0] = np.nan
        pca = residual_pca(matrix)
        assert pca.dropped_sites == ["s0", "flat"]
        assert "flat" not in pca.components.columns

    def test_n_components(self, random_matrix):
        pca = residual_pca(random_matrix, n_components=2)
        assert pca.scores.shape == (12, 2)

    def test_single_individual(self, random_matrix):
        with pytest.raises(InsufficientDataError):
            residual_pca(random_matrix.iloc[:1])


def test_suffix_codes():
    codes = suffix_codes(["p1A", "p2B", "p3A"])
    assert codes.tolist() == ["A", "B", "A"]
    mapped = suffix_codes(["p1A", "p2C"], {"A": "first"})
    assert mapped.tolist() == ["first", "C"]
