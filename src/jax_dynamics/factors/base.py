"""Factor and factor-graph containers.

A factor is a named algebraic relation over a few variables: a tuple of
variable keys, a pure JAX residual function taking the variables' values in
key order, and an isotropic noise sigma. Residuals are plain ``jax.numpy``
code, so an optimizer can linearize them with ``jax.jacfwd``.

Values are plain dicts from key to array: 4x4 matrices for poses, 6-vectors
for twists and wrenches, scalars for joint quantities and phase durations.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, Mapping, Tuple

import jax.numpy as jnp
from jax import Array

from ..transforms import se3

Values = Dict[int, Array]


@dataclass(frozen=True, eq=False)
class Factor:
    """One residual term of the assembled problem.

    Attributes:
        family: Constraint family, e.g. "pose" or "collocation".
        keys: Variable keys, in the order the residual takes them.
        residual: Pure function of the variable values returning a vector.
        sigma: Isotropic standard deviation used for whitening.
    """
    family: str
    keys: Tuple[int, ...]
    residual: Callable[..., Array]
    sigma: float

    def unwhitened_error(self, values: Mapping[int, Array]) -> Array:
        return jnp.atleast_1d(self.residual(*(values[key] for key in self.keys)))

    def whitened_error(self, values: Mapping[int, Array]) -> Array:
        return self.unwhitened_error(values) / self.sigma

    def error(self, values: Mapping[int, Array]) -> Array:
        """Half the squared norm of the whitened error."""
        e = self.whitened_error(values)
        return 0.5 * jnp.dot(e, e)


@dataclass(frozen=True)
class FactorGraph:
    """Immutable, ordered collection of factors.

    Graphs compose with ``+``; nothing is ever mutated in place, so partial
    graphs can be built independently and concatenated freely.
    """
    factors: Tuple[Factor, ...] = ()

    @classmethod
    def concatenate(cls, graphs: Iterable["FactorGraph"]) -> "FactorGraph":
        factors: Tuple[Factor, ...] = ()
        for graph in graphs:
            factors += graph.factors
        return cls(factors)

    def __add__(self, other: "FactorGraph") -> "FactorGraph":
        if not isinstance(other, FactorGraph):
            return NotImplemented
        return FactorGraph(self.factors + other.factors)

    def __len__(self) -> int:
        return len(self.factors)

    def __iter__(self) -> Iterator[Factor]:
        return iter(self.factors)

    def __getitem__(self, index: int) -> Factor:
        return self.factors[index]

    def keys(self) -> Tuple[int, ...]:
        """Distinct variable keys, in first-use order."""
        return tuple(dict.fromkeys(key for factor in self.factors for key in factor.keys))

    def family_counts(self) -> Dict[str, int]:
        return dict(Counter(factor.family for factor in self.factors))

    def error(self, values: Mapping[int, Array]) -> Array:
        """Total weighted residual, the sum of each factor's error."""
        total = jnp.asarray(0.0)
        for factor in self.factors:
            total = total + factor.error(values)
        return total


def _vector_prior_residual(value: Array, prior: Array) -> Array:
    return value - prior


def _pose_prior_residual(pose: Array, prior: Array) -> Array:
    return se3.log(se3.between(prior, pose))


def prior_factor(key: int, prior, sigma: float, family: str = "prior") -> Factor:
    """Pin a scalar or vector variable to a known value."""
    prior = jnp.asarray(prior, dtype=float)
    return Factor(family, (key,), lambda value: _vector_prior_residual(value, prior), sigma)


def pose_prior_factor(key: int, prior: Array, sigma: float, family: str = "pose_prior") -> Factor:
    """Pin a pose variable to a known pose."""
    prior = jnp.asarray(prior, dtype=float)
    return Factor(family, (key,), lambda pose: _pose_prior_residual(pose, prior), sigma)
