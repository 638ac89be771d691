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


"""
Tests for composition classes.

The tests within this file verify the values of each composition class against closed
forms, its analytic derivatives against automatic differentiation (or finite
differences where automatic differentiation is unavailable), and its parameter
validation.
"""

import math
from collections.abc import Callable
from contextlib import AbstractContextManager, nullcontext as does_not_raise

import equinox as eqx
import jax
import jax.numpy as jnp
import numpy as np
import pytest

from kernelcomp.compositions import (
    CompositionClass,
    ExponentialClass,
    MaternClass,
    PolynomialClass,
    RationalQuadraticClass,
    SigmoidClass,
    TranslationScaleClass,
)
from kernelcomp.util import ParameterDomainError

NONNEGATIVE_Z = jnp.array([0.3, 1.0, 2.5])
REAL_Z = jnp.array([-1.2, 0.3, 2.0])


def _with_parameter(composition: CompositionClass, name: str, value):
    """Replace a parameter without re-running the constructor checks."""
    return eqx.tree_at(lambda c: getattr(c, name), composition, value)


@pytest.mark.parametrize(
    "composition, expected, z",
    [
        (
            ExponentialClass(alpha=2.0, gamma=0.5),
            lambda z: jnp.exp(-2.0 * jnp.sqrt(z)),
            NONNEGATIVE_Z,
        ),
        (
            RationalQuadraticClass(alpha=0.5, beta=2.0),
            lambda z: (1 + 0.5 * z) ** -2.0,
            NONNEGATIVE_Z,
        ),
        (
            PolynomialClass(alpha=2.0, c=1.0, degree=3),
            lambda z: (2.0 * z + 1.0) ** 3,
            REAL_Z,
        ),
        (
            TranslationScaleClass(alpha=3.0, c=-1.0),
            lambda z: 3.0 * z - 1.0,
            REAL_Z,
        ),
        (
            SigmoidClass(alpha=0.5, c=0.2),
            lambda z: jnp.tanh(0.5 * z + 0.2),
            REAL_Z,
        ),
    ],
    ids=["exponential", "rational_quadratic", "polynomial", "translation", "sigmoid"],
)
class TestAnalyticCompositions:
    """Tests for the composition classes with closed-form derivatives."""

    def test_compute(
        self,
        jit_variant: Callable[[Callable], Callable],
        composition: CompositionClass,
        expected: Callable,
        z,
    ) -> None:
        """Values agree with the closed form."""
        output = jit_variant(composition.compute)(z)
        np.testing.assert_allclose(output, expected(z))

    def test_grad_z(self, composition: CompositionClass, expected: Callable, z) -> None:
        """The derivative w.r.t. the statistic agrees with ``jax.grad``."""
        del expected
        autodiff = jax.vmap(jax.grad(composition.compute))(z)
        np.testing.assert_allclose(composition.grad_z(z), autodiff)

    def test_grad_params(
        self, composition: CompositionClass, expected: Callable, z
    ) -> None:
        """The parameter derivatives agree with ``jax.grad`` in the declared order."""
        del expected
        gradients = composition.grad_params(z)
        assert len(gradients) == len(composition.parameter_names)
        for name, gradient in zip(composition.parameter_names, gradients):

            def _compute(value, z_i, name=name):
                return _with_parameter(composition, name, value).compute(z_i)

            autodiff = jax.vmap(jax.grad(_compute), in_axes=(None, 0))(
                getattr(composition, name), z
            )
            np.testing.assert_allclose(gradient, autodiff, err_msg=name)

    def test_shape(self, composition: CompositionClass, expected: Callable, z) -> None:
        """Every operation works elementwise on matrices."""
        del expected
        matrix = jnp.abs(jnp.stack([z, z]))
        assert composition.compute(matrix).shape == (2, 3)
        assert composition.grad_z(matrix).shape == (2, 3)
        assert all(g.shape == (2, 3) for g in composition.grad_params(matrix))


class TestExponentialClass:
    """Edge cases of :class:`ExponentialClass`."""

    def test_zero(self) -> None:
        """At zero the value is one and the derivatives are finite for gamma one."""
        composition = ExponentialClass(alpha=2.0, gamma=1.0)
        z = jnp.array(0.0)
        assert composition.compute(z) == 1.0
        assert composition.grad_z(z) == -2.0
        d_alpha, d_gamma = composition.grad_params(z)
        assert d_alpha == 0.0
        assert d_gamma == 0.0

    def test_gamma_log_is_safe_at_zero(self) -> None:
        """The gamma derivative does not produce NaN at zero."""
        _, d_gamma = ExponentialClass(gamma=0.5).grad_params(jnp.array([0.0, 1.0]))
        assert bool(jnp.all(jnp.isfinite(d_gamma)))


class TestPolynomialClass:
    """Edge cases of :class:`PolynomialClass`."""

    def test_integral_float_degree(self) -> None:
        """An integral float degree is stored as an integer."""
        composition = PolynomialClass(alpha=1.0, c=1.0, degree=2.0)
        assert composition.degree == 2
        assert isinstance(composition.degree, int)
        assert composition.compute(jnp.array(2.0)) == 9.0

    def test_degree_one_derivative(self) -> None:
        """A linear polynomial has constant derivative alpha."""
        composition = PolynomialClass(alpha=3.0, c=0.0, degree=1)
        np.testing.assert_allclose(composition.grad_z(REAL_Z), 3.0)

    def test_negative_base(self) -> None:
        """Odd degrees of a negative base keep their sign."""
        composition = PolynomialClass(alpha=1.0, c=0.0, degree=3)
        np.testing.assert_allclose(composition.compute(jnp.array(-2.0)), -8.0)


class TestMaternClass:
    """Tests for :class:`MaternClass`, which has no autodiff through the Bessel term."""

    @pytest.mark.parametrize(
        "nu, closed_form",
        [
            (0.5, lambda r, theta: jnp.exp(-r / theta)),
            (
                1.5,
                lambda r, theta: (1 + math.sqrt(3) * r / theta)
                * jnp.exp(-math.sqrt(3) * r / theta),
            ),
            (
                2.5,
                lambda r, theta: (
                    1 + math.sqrt(5) * r / theta + 5 * r**2 / (3 * theta**2)
                )
                * jnp.exp(-math.sqrt(5) * r / theta),
            ),
        ],
        ids=["half", "three_halves", "five_halves"],
    )
    def test_half_integer_closed_forms(self, nu: float, closed_form: Callable) -> None:
        """Half-integer smoothness reduces to the familiar closed forms."""
        theta = 1.7
        z = jnp.array([0.0, 0.2, 1.0, 4.0, 30.0])
        output = MaternClass(nu=nu, theta=theta).compute(z)
        np.testing.assert_allclose(output, closed_form(jnp.sqrt(z), theta), rtol=1e-10)

    def test_compute_under_jit(self, jit_variant: Callable[[Callable], Callable]):
        """The host callback works with and without JIT compilation."""
        composition = MaternClass(nu=0.5, theta=2.0)
        z = jnp.array([0.0, 1.0, 4.0])
        output = jit_variant(composition.compute)(z)
        np.testing.assert_allclose(output, jnp.exp(-jnp.sqrt(z) / 2.0))

    @pytest.mark.parametrize("nu", [0.5, 1.0, 2.3])
    def test_grad_z_finite_difference(self, nu: float) -> None:
        """The derivative w.r.t. the statistic agrees with central differences."""
        composition = MaternClass(nu=nu, theta=0.8)
        z = jnp.array([0.1, 0.9, 2.4])
        step = 1e-6
        finite_difference = (
            composition.compute(z + step) - composition.compute(z - step)
        ) / (2 * step)
        np.testing.assert_allclose(composition.grad_z(z), finite_difference, rtol=1e-6)

    @pytest.mark.parametrize("nu", [0.5, 1.0, 2.3])
    def test_grad_theta_finite_difference(self, nu: float) -> None:
        """The length scale derivative agrees with central differences."""
        theta, step = 0.8, 1e-6
        z = jnp.array([0.0, 0.1, 0.9, 2.4])
        (d_theta,) = MaternClass(nu=nu, theta=theta).grad_params(z)
        finite_difference = (
            MaternClass(nu=nu, theta=theta + step).compute(z)
            - MaternClass(nu=nu, theta=theta - step).compute(z)
        ) / (2 * step)
        np.testing.assert_allclose(d_theta, finite_difference, rtol=1e-6, atol=1e-10)

    def test_grad_z_at_zero(self) -> None:
        """At zero the derivative is finite only for smoothness above one."""
        theta = 2.0
        smooth = MaternClass(nu=2.5, theta=theta).grad_z(jnp.array(0.0))
        np.testing.assert_allclose(smooth, -5 / (6 * theta**2))
        rough = MaternClass(nu=1.0, theta=theta).grad_z(jnp.array(0.0))
        assert rough == -jnp.inf

    @pytest.mark.parametrize(
        "dtype", [jnp.float32, jnp.float64], ids=["single", "double"]
    )
    @pytest.mark.parametrize("nu", [40.0, 200.0, 1_000.0])
    def test_large_smoothness(self, nu: float, dtype) -> None:
        """Large smoothness stays finite and approaches the Gaussian limit."""
        z = jnp.array([0.0, 0.0025, 0.25, 4.0], dtype=dtype)
        composition = MaternClass(nu=nu)
        output = composition.compute(z)
        assert output.dtype == dtype
        assert bool(jnp.all((output >= 0) & (output <= 1)))
        np.testing.assert_allclose(output, jnp.exp(-z / 2), atol=2e-2)
        (d_theta,) = composition.grad_params(z)
        for gradient in (composition.grad_z(z), d_theta):
            assert gradient.dtype == dtype
            assert bool(jnp.all(jnp.isfinite(gradient)))

    def test_parameter_names(self) -> None:
        """Only the length scale is a parameter; the smoothness is structural."""
        assert MaternClass.parameter_names == ("theta",)
        assert len(MaternClass().grad_params(jnp.ones(3))) == 1


class TestRequiresNonnegative:
    """Tests for the declared statistic requirements."""

    @pytest.mark.parametrize(
        "composition_type, requires_nonnegative",
        [
            (ExponentialClass, True),
            (RationalQuadraticClass, True),
            (PolynomialClass, False),
            (TranslationScaleClass, False),
            (SigmoidClass, False),
            (MaternClass, True),
        ],
    )
    def test_requires_nonnegative(
        self, composition_type: type[CompositionClass], requires_nonnegative: bool
    ) -> None:
        """Only the link functions undefined for negative input require it."""
        assert composition_type.requires_nonnegative is requires_nonnegative


@pytest.mark.parametrize(
    "factory, context",
    [
        (
            lambda: ExponentialClass(alpha=0.0),
            pytest.raises(ParameterDomainError, match="'alpha' must be strictly above"),
        ),
        (
            lambda: ExponentialClass(gamma=0.0),
            pytest.raises(ParameterDomainError, match="'gamma' must be strictly above"),
        ),
        (
            lambda: ExponentialClass(gamma=1.5),
            pytest.raises(ParameterDomainError, match="'gamma' must be 1 or lower"),
        ),
        (lambda: ExponentialClass(gamma=1.0), does_not_raise()),
        (
            lambda: RationalQuadraticClass(alpha=-1.0, beta=1.0),
            pytest.raises(ParameterDomainError, match="'alpha' must be strictly above"),
        ),
        (
            lambda: RationalQuadraticClass(alpha=1.0, beta=0.0),
            pytest.raises(ParameterDomainError, match="'beta' must be strictly above"),
        ),
        (
            lambda: PolynomialClass(c=-1.0),
            pytest.raises(ParameterDomainError, match="'c' must be 0 or above"),
        ),
        (lambda: PolynomialClass(c=0.0), does_not_raise()),
        (
            lambda: PolynomialClass(degree=0),
            pytest.raises(ParameterDomainError, match="'degree' must be a positive"),
        ),
        (
            lambda: PolynomialClass(degree=2.5),
            pytest.raises(ParameterDomainError, match="'degree' must be a positive"),
        ),
        (
            lambda: TranslationScaleClass(alpha=-2.0),
            pytest.raises(ParameterDomainError, match="'alpha' must be strictly above"),
        ),
        (lambda: TranslationScaleClass(alpha=2.0, c=-5.0), does_not_raise()),
        (
            lambda: SigmoidClass(alpha=0.0),
            pytest.raises(ParameterDomainError, match="'alpha' must be strictly above"),
        ),
        (
            lambda: MaternClass(nu=0.0),
            pytest.raises(ParameterDomainError, match="'nu' must be strictly above"),
        ),
        (
            lambda: MaternClass(theta=-1.0),
            pytest.raises(ParameterDomainError, match="'theta' must be strictly above"),
        ),
    ],
    ids=[
        "exponential_alpha",
        "exponential_gamma_zero",
        "exponential_gamma_above_one",
        "exponential_gamma_one",
        "rational_quadratic_alpha",
        "rational_quadratic_beta",
        "polynomial_negative_c",
        "polynomial_zero_c",
        "polynomial_degree_zero",
        "polynomial_fractional_degree",
        "translation_alpha",
        "translation_negative_c",
        "sigmoid_alpha",
        "matern_nu",
        "matern_theta",
    ],
)
def test_invalid_parameters(
    factory: Callable[[], CompositionClass], context: AbstractContextManager
) -> None:
    """Parameters outside their domain are rejected on construction."""
    with context:
        factory()
