# © Crown Copyright GCHQ
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""Tests for the named kernels in :mod:`kernelcomp.kernels.named`."""

import math
from collections.abc import Callable
from typing import NamedTuple

import jax.numpy as jnp
import numpy as np
import pytest

from kernelcomp.compositions import (
    ExponentialClass,
    MaternClass,
    PolynomialClass,
    RationalQuadraticClass,
    SigmoidClass,
    TranslationScaleClass,
)
from kernelcomp.kernels import (
    GaussianKernel,
    KernelComposition,
    LaplacianKernel,
    LinearKernel,
    MaternKernel,
    PeriodicKernel,
    PolynomialKernel,
    RadialBasisKernel,
    RationalQuadraticKernel,
    SigmoidKernel,
    SquaredExponentialKernel,
)
from kernelcomp.statistics import ScalarProduct, SineSquared, SquaredDistance
from kernelcomp.util import ParameterDomainError


class _Problem(NamedTuple):
    x: jnp.ndarray
    y: jnp.ndarray
    expected_output: float
    kernel: KernelComposition


@pytest.mark.parametrize(
    "problem",
    [
        _Problem(
            jnp.array([1.0, 0.0]), jnp.array([0.0, 1.0]), math.exp(-2), GaussianKernel()
        ),
        _Problem(
            jnp.array([1.0, 2.0]), jnp.array([3.0, 4.0]), 23.0, LinearKernel(2.0, 1.0)
        ),
        _Problem(
            jnp.array([1.0, 1.0]),
            jnp.array([1.0, 1.0]),
            9.0,
            PolynomialKernel(1.0, 1.0, 2.0),
        ),
        _Problem(
            jnp.array([0.0, 0.0]),
            jnp.array([3.0, 4.0]),
            math.exp(-10.0),
            LaplacianKernel(2.0),
        ),
        _Problem(
            jnp.array([0.25]), jnp.array([0.0]), math.exp(-0.5), PeriodicKernel(1.0)
        ),
        _Problem(
            jnp.array([1.0, 1.0]),
            jnp.array([0.0, 0.0]),
            0.25,
            RationalQuadraticKernel(alpha=0.5, beta=2.0),
        ),
        _Problem(
            jnp.array([0.0]),
            jnp.array([2.0]),
            math.exp(-2.0),
            MaternKernel(nu=0.5, theta=1.0),
        ),
        _Problem(
            jnp.array([1.0, -1.0]),
            jnp.array([2.0, 1.0]),
            math.tanh(1.5),
            SigmoidKernel(alpha=0.5, c=1.0),
        ),
        _Problem(
            jnp.array([1.0, 0.0]),
            jnp.array([0.0, 1.0]),
            math.exp(-(4.0 + 1.0)),
            GaussianKernel(weights=jnp.array([2.0, 1.0])),
        ),
    ],
    ids=[
        "gaussian",
        "linear",
        "polynomial_float_degree",
        "laplacian",
        "periodic",
        "rational_quadratic",
        "matern_half",
        "sigmoid",
        "weighted_gaussian",
    ],
)
def test_compute_elementwise(
    jit_variant: Callable[[Callable], Callable], problem: _Problem
) -> None:
    """Named kernels evaluate to their closed forms on small vectors."""
    x, y, expected_output, kernel = problem
    output = jit_variant(kernel.compute_elementwise)(x, y)
    np.testing.assert_allclose(output, expected_output)


@pytest.mark.parametrize(
    "kernel, composition, statistic",
    [
        (GaussianKernel(0.3), ExponentialClass(0.3, 1.0), SquaredDistance()),
        (LaplacianKernel(0.3), ExponentialClass(0.3, 0.5), SquaredDistance()),
        (PeriodicKernel(0.3, 2.0), ExponentialClass(0.3, 1.0), SineSquared(2.0)),
        (
            RationalQuadraticKernel(0.3, 2.0),
            RationalQuadraticClass(0.3, 2.0),
            SquaredDistance(),
        ),
        (MaternKernel(1.5, 0.3), MaternClass(1.5, 0.3), SquaredDistance()),
        (PolynomialKernel(0.3, 2.0, 4), PolynomialClass(0.3, 2.0, 4), ScalarProduct()),
        (LinearKernel(0.3, 2.0), TranslationScaleClass(0.3, 2.0), ScalarProduct()),
        (SigmoidKernel(0.3, 2.0), SigmoidClass(0.3, 2.0), ScalarProduct()),
    ],
    ids=[
        "gaussian",
        "laplacian",
        "periodic",
        "rational_quadratic",
        "matern",
        "polynomial",
        "linear",
        "sigmoid",
    ],
)
def test_structure(kernel: KernelComposition, composition, statistic) -> None:
    """Each named kernel is its composition class applied to its statistic."""
    assert isinstance(kernel, KernelComposition)
    assert kernel.composition == composition
    assert kernel.statistic == statistic


def test_defaults() -> None:
    """Default parameters of the named kernels."""
    assert GaussianKernel().composition == ExponentialClass(1.0, 1.0)
    assert PeriodicKernel().statistic.period == math.pi
    assert RationalQuadraticKernel().composition == RationalQuadraticClass(1.0, 1.0)
    assert MaternKernel().composition == MaternClass(1.0, 1.0)
    assert PolynomialKernel().composition == PolynomialClass(1.0, 1.0, 3)
    assert LinearKernel().composition == TranslationScaleClass(1.0, 1.0)
    assert SigmoidKernel().composition == SigmoidClass(1.0, 1.0)


@pytest.mark.parametrize("dtype", [jnp.float32, jnp.float64], ids=["single", "double"])
@pytest.mark.parametrize("nu", [40.0, 200.0])
def test_matern_large_smoothness(nu: float, dtype) -> None:
    """Very smooth Matérn kernel matrices are finite and bounded by one."""
    x = jnp.zeros((1, 2), dtype=dtype)
    y = jnp.array([[0.05, 0.0], [0.5, 0.0], [2.0, 0.0]], dtype=dtype)
    output = MaternKernel(nu=nu).compute(x, y)
    assert output.shape == (1, 3)
    assert bool(jnp.all(jnp.isfinite(output)))
    assert bool(jnp.all((output > 0) & (output <= 1)))
    assert bool(jnp.all(jnp.diff(output[0]) < 0))


def test_synonyms() -> None:
    """The squared exponential and radial basis kernels are the Gaussian kernel."""
    assert SquaredExponentialKernel is GaussianKernel
    assert RadialBasisKernel is GaussianKernel
    assert RadialBasisKernel(alpha=2.0) == GaussianKernel(alpha=2.0)


def test_weights_are_forwarded() -> None:
    """The ``weights`` keyword reaches the statistic."""
    weights = jnp.array([1.0, 0.5])
    kernel = LinearKernel(weights=weights)
    np.testing.assert_array_equal(kernel.statistic.weights, weights)


@pytest.mark.parametrize(
    "factory, match",
    [
        (lambda: GaussianKernel(alpha=-1.0), "'alpha' must be strictly above 0"),
        (lambda: PeriodicKernel(period=0.0), "'period' must be strictly above 0"),
        (lambda: PolynomialKernel(degree=0), "'degree' must be a positive integer"),
        (lambda: MaternKernel(theta=0.0), "'theta' must be strictly above 0"),
        (
            lambda: LinearKernel(weights=jnp.array([-1.0])),
            "'weights' must be non-negative",
        ),
    ],
    ids=["gaussian_alpha", "periodic_period", "polynomial_degree", "matern", "weights"],
)
def test_invalid_parameters(factory: Callable, match: str) -> None:
    """Invalid parameters are rejected when a named kernel is constructed."""
    with pytest.raises(ParameterDomainError, match=match):
        factory()
