"""Deterministic random utilities.

The weighted site draw is the only stochastic step of the pipeline. It
receives an explicit generator; nothing here touches the global NumPy or
``random`` state.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(slots=True)
class RandomState:
    """Wrapper for deterministic random number generation."""

    seed: int
    generator: np.random.Generator

    @classmethod
    def create(cls, seed: int) -> "RandomState":
        return cls(seed=seed, generator=np.random.default_rng(seed))


def choose_rng(seed: int) -> RandomState:
    """Convenience helper to create a ``RandomState``."""

    return RandomState.create(seed)
