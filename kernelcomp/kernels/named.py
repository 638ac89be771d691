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
Named kernels: fixed pairings of a composition class and a pairwise statistic.

Each class below is a :class:`~kernelcomp.kernels.base.KernelComposition` whose
constructor only instantiates its composition class and statistic; all behaviour is
inherited. Every named kernel accepts an optional keyword ``weights``, the
non-negative per-dimension weights passed to its statistic.

Equivalently, any of them can be built by hand, for example

.. code-block:: python

    KernelComposition(ExponentialClass(alpha=2.0), SquaredDistance())

is the same kernel as ``GaussianKernel(alpha=2.0)``.
"""

import math
from typing import Optional

from jax import Array
from jaxtyping import Shaped

from kernelcomp.compositions import (
    ExponentialClass,
    MaternClass,
    PolynomialClass,
    RationalQuadraticClass,
    SigmoidClass,
    TranslationScaleClass,
)
from kernelcomp.kernels.base import KernelComposition
from kernelcomp.statistics import ScalarProduct, SineSquared, SquaredDistance


class GaussianKernel(KernelComposition):
    r"""
    Define the Gaussian kernel, :math:`k(x, y) = \exp(-\alpha ||x - y||^2)`.

    Also available as :data:`SquaredExponentialKernel` and :data:`RadialBasisKernel`.

    :param alpha: Scale :math:`\alpha`, must be positive
    :param weights: Optional per-dimension weights of the squared distance
    """

    def __init__(
        self, alpha: float = 1.0, *, weights: Optional[Shaped[Array, " d"]] = None
    ):
        """Initialise GaussianKernel with KernelComposition attributes."""
        self.composition = ExponentialClass(alpha=alpha, gamma=1.0)
        self.statistic = SquaredDistance(weights=weights)


SquaredExponentialKernel = GaussianKernel
RadialBasisKernel = GaussianKernel


class LaplacianKernel(KernelComposition):
    r"""
    Define the Laplacian kernel, :math:`k(x, y) = \exp(-\alpha ||x - y||)`.

    .. warning::

        The Laplacian kernel is not differentiable when :math:`x=y`.

    :param alpha: Scale :math:`\alpha`, must be positive
    :param weights: Optional per-dimension weights of the squared distance
    """

    def __init__(
        self, alpha: float = 1.0, *, weights: Optional[Shaped[Array, " d"]] = None
    ):
        """Initialise LaplacianKernel with KernelComposition attributes."""
        self.composition = ExponentialClass(alpha=alpha, gamma=0.5)
        self.statistic = SquaredDistance(weights=weights)


class PeriodicKernel(KernelComposition):
    r"""
    Define the periodic kernel, :math:`k(x, y) = \exp(-\alpha \sum_i \sin^2(p d_i))`.

    Here :math:`d = x - y` are the coordinate differences.

    :param alpha: Scale :math:`\alpha`, must be positive
    :param period: Frequency :math:`p` applied to the coordinate differences, must be
        positive
    :param weights: Optional per-dimension weights of the sine-squared statistic
    """

    def __init__(
        self,
        alpha: float = 1.0,
        period: float = math.pi,
        *,
        weights: Optional[Shaped[Array, " d"]] = None,
    ):
        """Initialise PeriodicKernel with KernelComposition attributes."""
        self.composition = ExponentialClass(alpha=alpha, gamma=1.0)
        self.statistic = SineSquared(period=period, weights=weights)


class RationalQuadraticKernel(KernelComposition):
    r"""
    Define the rational quadratic kernel, :math:`(1 + \alpha ||x - y||^2)^{-\beta}`.

    :param alpha: Scale :math:`\alpha`, must be positive
    :param beta: Exponent :math:`\beta`, must be positive
    :param weights: Optional per-dimension weights of the squared distance
    """

    def __init__(
        self,
        alpha: float = 1.0,
        beta: float = 1.0,
        *,
        weights: Optional[Shaped[Array, " d"]] = None,
    ):
        """Initialise RationalQuadraticKernel with KernelComposition attributes."""
        self.composition = RationalQuadraticClass(alpha=alpha, beta=beta)
        self.statistic = SquaredDistance(weights=weights)


class MaternKernel(KernelComposition):
    r"""
    Define the Matérn kernel.

    See :class:`~kernelcomp.compositions.MaternClass` for the functional form.

    :param nu: Smoothness :math:`\nu`, must be positive
    :param theta: Length scale :math:`\theta`, must be positive
    :param weights: Optional per-dimension weights of the squared distance
    """

    def __init__(
        self,
        nu: float = 1.0,
        theta: float = 1.0,
        *,
        weights: Optional[Shaped[Array, " d"]] = None,
    ):
        """Initialise MaternKernel with KernelComposition attributes."""
        self.composition = MaternClass(nu=nu, theta=theta)
        self.statistic = SquaredDistance(weights=weights)


class PolynomialKernel(KernelComposition):
    r"""
    Define the polynomial kernel, :math:`k(x, y) = (\alpha x^T y + c)^d`.

    :param alpha: Scale :math:`\alpha`, must be positive
    :param c: Offset :math:`c`, must be non-negative
    :param degree: Degree :math:`d`, must be a positive integer
    :param weights: Optional per-dimension weights of the scalar product
    """

    def __init__(
        self,
        alpha: float = 1.0,
        c: float = 1.0,
        degree: int = 3,
        *,
        weights: Optional[Shaped[Array, " d"]] = None,
    ):
        """Initialise PolynomialKernel with KernelComposition attributes."""
        self.composition = PolynomialClass(alpha=alpha, c=c, degree=degree)
        self.statistic = ScalarProduct(weights=weights)


class LinearKernel(KernelComposition):
    r"""
    Define the linear kernel, :math:`k(x, y) = \alpha x^T y + c`.

    :param alpha: Scale :math:`\alpha`, must be positive
    :param c: Offset :math:`c`
    :param weights: Optional per-dimension weights of the scalar product
    """

    def __init__(
        self,
        alpha: float = 1.0,
        c: float = 1.0,
        *,
        weights: Optional[Shaped[Array, " d"]] = None,
    ):
        """Initialise LinearKernel with KernelComposition attributes."""
        self.composition = TranslationScaleClass(alpha=alpha, c=c)
        self.statistic = ScalarProduct(weights=weights)


class SigmoidKernel(KernelComposition):
    r"""
    Define the sigmoid kernel, :math:`k(x, y) = \tanh(\alpha x^T y + c)`.

    .. note::

        The sigmoid kernel is not positive semi-definite for all parameter values.

    :param alpha: Scale :math:`\alpha`, must be positive
    :param c: Offset :math:`c`
    :param weights: Optional per-dimension weights of the scalar product
    """

    def __init__(
        self,
        alpha: float = 1.0,
        c: float = 1.0,
        *,
        weights: Optional[Shaped[Array, " d"]] = None,
    ):
        """Initialise SigmoidKernel with KernelComposition attributes."""
        self.composition = SigmoidClass(alpha=alpha, c=c)
        self.statistic = ScalarProduct(weights=weights)
