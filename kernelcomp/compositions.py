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

r"""
Composition classes: scalar link functions applied to a pairwise statistic.

A composition class is a function :math:`\phi: \mathbb{R} \to \mathbb{R}` with a few
scalar parameters. Applied to a pairwise statistic :math:`z = \psi(x, y)`, such as the
squared distance or the scalar product, it yields the kernel
:math:`k(x, y) = \phi(\psi(x, y))`.

Every :class:`CompositionClass` implements three elementwise operations on arrays of
statistic values :math:`z`:

- :meth:`~CompositionClass.compute`, the value :math:`\phi(z)`,
- :meth:`~CompositionClass.grad_z`, the derivative :math:`\partial\phi/\partial z`
  used by the chain rule of kernel gradients,
- :meth:`~CompositionClass.grad_params`, the derivatives w.r.t. each learnable
  parameter named in :attr:`~CompositionClass.parameter_names`, used to fit kernel
  parameters by gradient descent.

Instances are immutable :class:`equinox.Module` objects whose parameters are
validated on construction; an out-of-domain parameter raises
:class:`~kernelcomp.util.ParameterDomainError` instead of producing NaNs later. To
change a parameter, construct a new instance (or use :func:`equinox.tree_at`).
"""

import math
from abc import abstractmethod
from typing import ClassVar

import equinox as eqx
import jax.numpy as jnp
from jax import Array
from jaxtyping import Shaped
from typing_extensions import override

from kernelcomp.special import log_kv
from kernelcomp.util import clamp_negative
from kernelcomp.validation import validate_in_range, validate_positive_integer


class CompositionClass(eqx.Module):
    """
    Abstract base class for composition classes.

    :attr:`parameter_names` orders the tuple returned by :meth:`grad_params`, and
    :attr:`requires_nonnegative` records whether :math:`\\phi` is only defined for a
    non-negative statistic.
    """

    parameter_names: ClassVar[tuple[str, ...]]
    requires_nonnegative: ClassVar[bool]

    @abstractmethod
    def compute(self, z: Shaped[Array, " *shape"]) -> Shaped[Array, " *shape"]:
        """
        Evaluate the link function elementwise.

        :param z: Pairwise statistic values
        :return: Link function values, same shape as ``z``
        """

    @abstractmethod
    def grad_z(self, z: Shaped[Array, " *shape"]) -> Shaped[Array, " *shape"]:
        """
        Evaluate the derivative of the link function w.r.t. the statistic.

        :param z: Pairwise statistic values
        :return: Derivatives, same shape as ``z``
        """

    @abstractmethod
    def grad_params(
        self, z: Shaped[Array, " *shape"]
    ) -> tuple[Shaped[Array, " *shape"], ...]:
        """
        Evaluate the derivatives of the link function w.r.t. its parameters.

        :param z: Pairwise statistic values
        :return: One array per entry of :attr:`parameter_names`, each the shape of
            ``z``
        """


class ExponentialClass(CompositionClass):
    r"""
    Define the exponential composition class, :math:`\phi(z) = \exp(-\alpha z^\gamma)`.

    .. warning::

        For :math:`\gamma < 1` the derivative w.r.t. :math:`z` is unbounded at
        :math:`z = 0`.

    :param alpha: Scale :math:`\alpha`, must be positive
    :param gamma: Exponent :math:`\gamma`, must lie in :math:`(0, 1]`
    """

    alpha: float = eqx.field(default=1.0, converter=float)
    gamma: float = eqx.field(default=1.0, converter=float)

    parameter_names: ClassVar[tuple[str, ...]] = ("alpha", "gamma")
    requires_nonnegative: ClassVar[bool] = True

    def __check_init__(self):
        """Check attributes are valid."""
        validate_in_range(self.alpha, "'alpha'", True, lower_bound=0)
        validate_in_range(self.gamma, "'gamma'", True, lower_bound=0)
        validate_in_range(self.gamma, "'gamma'", False, upper_bound=1)

    @override
    def compute(self, z):
        return jnp.exp(-self.alpha * jnp.asarray(z) ** self.gamma)

    @override
    def grad_z(self, z):
        z = jnp.asarray(z)
        return -self.alpha * self.gamma * z ** (self.gamma - 1) * self.compute(z)

    @override
    def grad_params(self, z):
        z = jnp.asarray(z)
        k = self.compute(z)
        powered = z**self.gamma
        log_z = jnp.log(jnp.where(z > 0, z, 1.0))
        return -powered * k, -self.alpha * powered * log_z * k


class RationalQuadraticClass(CompositionClass):
    r"""
    Define the rational quadratic composition class, :math:`(1 + \alpha z)^{-\beta}`.

    :param alpha: Scale :math:`\alpha`, must be positive
    :param beta: Exponent :math:`\beta`, must be positive
    """

    alpha: float = eqx.field(default=1.0, converter=float)
    beta: float = eqx.field(default=1.0, converter=float)

    parameter_names: ClassVar[tuple[str, ...]] = ("alpha", "beta")
    requires_nonnegative: ClassVar[bool] = True

    def __check_init__(self):
        """Check attributes are valid."""
        validate_in_range(self.alpha, "'alpha'", True, lower_bound=0)
        validate_in_range(self.beta, "'beta'", True, lower_bound=0)

    @override
    def compute(self, z):
        return (1 + self.alpha * jnp.asarray(z)) ** -self.beta

    @override
    def grad_z(self, z):
        body = 1 + self.alpha * jnp.asarray(z)
        return -self.alpha * self.beta * body ** (-self.beta - 1)

    @override
    def grad_params(self, z):
        z = jnp.asarray(z)
        body = 1 + self.alpha * z
        d_alpha = -self.beta * z * body ** (-self.beta - 1)
        d_beta = -jnp.log1p(self.alpha * z) * body**-self.beta
        return d_alpha, d_beta


def _integral_to_int(x):
    """Convert floats holding an integral value to :class:`int`."""
    if isinstance(x, float) and x.is_integer():
        return int(x)
    return x


class PolynomialClass(CompositionClass):
    r"""
    Define the polynomial composition class, :math:`\phi(z) = (\alpha z + c)^d`.

    The degree is structural and has no entry in :attr:`parameter_names`.

    :param alpha: Scale :math:`\alpha`, must be positive
    :param c: Offset :math:`c`, must be non-negative
    :param degree: Degree :math:`d`, must be a positive integer; integral floats such
        as ``2.0`` are accepted
    """

    alpha: float = eqx.field(default=1.0, converter=float)
    c: float = eqx.field(default=1.0, converter=float)
    degree: int = eqx.field(default=3, converter=_integral_to_int)

    parameter_names: ClassVar[tuple[str, ...]] = ("alpha", "c")
    requires_nonnegative: ClassVar[bool] = False

    def __check_init__(self):
        """Check attributes are valid."""
        validate_in_range(self.alpha, "'alpha'", True, lower_bound=0)
        validate_in_range(self.c, "'c'", False, lower_bound=0)
        validate_positive_integer(self.degree, "'degree'")

    @override
    def compute(self, z):
        return (self.alpha * jnp.asarray(z) + self.c) ** self.degree

    @override
    def grad_z(self, z):
        body = self.alpha * jnp.asarray(z) + self.c
        return self.alpha * self.degree * body ** (self.degree - 1)

    @override
    def grad_params(self, z):
        z = jnp.asarray(z)
        derivative = self.degree * (self.alpha * z + self.c) ** (self.degree - 1)
        return z * derivative, derivative


class TranslationScaleClass(CompositionClass):
    r"""
    Define the translation-scale composition class, :math:`\phi(z) = \alpha z + c`.

    :param alpha: Scale :math:`\alpha`, must be positive
    :param c: Translation :math:`c`
    """

    alpha: float = eqx.field(default=1.0, converter=float)
    c: float = eqx.field(default=0.0, converter=float)

    parameter_names: ClassVar[tuple[str, ...]] = ("alpha", "c")
    requires_nonnegative: ClassVar[bool] = False

    def __check_init__(self):
        """Check attributes are valid."""
        validate_in_range(self.alpha, "'alpha'", True, lower_bound=0)

    @override
    def compute(self, z):
        return self.alpha * jnp.asarray(z) + self.c

    @override
    def grad_z(self, z):
        return jnp.full_like(jnp.asarray(z), self.alpha)

    @override
    def grad_params(self, z):
        z = jnp.asarray(z)
        return z, jnp.ones_like(z)


class SigmoidClass(CompositionClass):
    r"""
    Define the sigmoid composition class, :math:`\phi(z) = \tanh(\alpha z + c)`.

    :param alpha: Scale :math:`\alpha`, must be positive
    :param c: Translation :math:`c`
    """

    alpha: float = eqx.field(default=1.0, converter=float)
    c: float = eqx.field(default=0.0, converter=float)

    parameter_names: ClassVar[tuple[str, ...]] = ("alpha", "c")
    requires_nonnegative: ClassVar[bool] = False

    def __check_init__(self):
        """Check attributes are valid."""
        validate_in_range(self.alpha, "'alpha'", True, lower_bound=0)

    @override
    def compute(self, z):
        return jnp.tanh(self.alpha * jnp.asarray(z) + self.c)

    @override
    def grad_z(self, z):
        return self.alpha * (1 - self.compute(z) ** 2)

    @override
    def grad_params(self, z):
        z = jnp.asarray(z)
        sech_squared = 1 - self.compute(z) ** 2
        return z * sech_squared, sech_squared


class MaternClass(CompositionClass):
    r"""
    Define the Matérn composition class on a squared distance :math:`z = r^2`.

    Given smoothness :math:`\nu` and length scale :math:`\theta`,

    .. math::

        \phi(z) = \frac{2^{1-\nu}}{\Gamma(\nu)} s^\nu K_\nu(s), \quad
        s = \frac{\sqrt{2 \nu z}}{\theta},

    with :math:`\phi(0) = 1`, where :math:`K_\nu` is the modified Bessel function of
    the second kind. :math:`\nu = 1/2` recovers :math:`\exp(-r/\theta)` and
    :math:`\nu \to \infty` the Gaussian :math:`\exp(-r^2/2\theta^2)`.

    The smoothness is structural; only :math:`\theta` is in :attr:`parameter_names`.
    Values and derivatives are assembled as logarithms by
    :func:`~kernelcomp.special.log_kv` and exponentiated last, so large smoothness
    stays finite in single precision.

    .. warning::

        For :math:`\nu \le 1` the derivative w.r.t. :math:`z` is unbounded at
        :math:`z = 0`.

    :param nu: Smoothness :math:`\nu`, must be positive
    :param theta: Length scale :math:`\theta`, must be positive
    """

    nu: float = eqx.field(default=1.0, converter=float)
    theta: float = eqx.field(default=1.0, converter=float)

    parameter_names: ClassVar[tuple[str, ...]] = ("theta",)
    requires_nonnegative: ClassVar[bool] = True

    def __check_init__(self):
        """Check attributes are valid."""
        validate_in_range(self.nu, "'nu'", True, lower_bound=0)
        validate_in_range(self.theta, "'theta'", True, lower_bound=0)

    @property
    def log_normalisation(self) -> float:
        r"""Logarithm of the constant :math:`2^{1-\nu} / \Gamma(\nu)`."""
        return (1 - self.nu) * math.log(2) - math.lgamma(self.nu)

    def _scaled_distance(self, z: Array) -> tuple[Array, Array]:
        """Return the positive mask and the scaled distance with zeros replaced."""
        scaled = jnp.sqrt(2 * self.nu * clamp_negative(z)) / self.theta
        positive = scaled > 0
        return positive, jnp.where(positive, scaled, 1.0)

    @override
    def compute(self, z):
        positive, scaled = self._scaled_distance(jnp.asarray(z))
        log_value = log_kv(
            self.nu, scaled, power=self.nu, offset=self.log_normalisation
        )
        # The correlation is at most one
        value = jnp.exp(jnp.minimum(log_value, 0.0))
        return jnp.where(positive, value, 1.0)

    @override
    def grad_z(self, z):
        positive, scaled = self._scaled_distance(jnp.asarray(z))
        log_magnitude = log_kv(
            self.nu - 1, scaled, power=self.nu - 1, offset=self.log_normalisation
        )
        value = -(self.nu / self.theta**2) * jnp.exp(log_magnitude)
        if self.nu > 1:
            at_zero = -self.nu / (2 * (self.nu - 1) * self.theta**2)
        else:
            at_zero = -jnp.inf
        return jnp.where(positive, value, at_zero)

    @override
    def grad_params(self, z):
        positive, scaled = self._scaled_distance(jnp.asarray(z))
        log_magnitude = log_kv(
            self.nu - 1, scaled, power=self.nu + 1, offset=self.log_normalisation
        )
        value = jnp.exp(log_magnitude) / self.theta
        return (jnp.where(positive, value, 0.0),)
