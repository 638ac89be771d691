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
Pairwise statistics between vectors and between the observations of design matrices.

A pairwise statistic :math:`\psi: \mathbb{R}^d \times \mathbb{R}^d \to \mathbb{R}` is
the inner building block of every kernel in this library; a kernel is obtained by
applying a scalar link function (a :class:`~kernelcomp.compositions.CompositionClass`)
to it. Three statistics are provided, each optionally weighted per dimension by a
non-negative vector :math:`w`:

- the scalar product :math:`\sum_i x_i y_i w_i`,
- the squared distance :math:`\sum_i ((x_i - y_i) w_i)^2`,
- the sine-squared statistic :math:`\sum_i (w_i \sin(p (x_i - y_i)))^2`.

The module has two layers. The functional layer (:func:`scalar_product`,
:func:`gram_squared_distance`, ...) works on plain arrays. The object layer
(:class:`ScalarProduct`, :class:`SquaredDistance`, :class:`SineSquared`) binds the
weights (and period) to an immutable :class:`equinox.Module` so that it can be paired
with a composition class in a :class:`~kernelcomp.kernels.KernelComposition`.
Weights are checked for negative entries on construction, which needs their values, so
statistic objects (and the named kernels built on them) cannot be constructed from
traced weights inside ``jax.jit`` or ``jax.grad``. Construct them outside and swap in
traced weights with :func:`equinox.tree_at`, which skips the check.

Gram matrices are never built from nested loops over pairs of observations. The
scalar product Gram matrix is a single dense matrix product, and the squared distance
Gram matrix is recovered from it through

.. math::

    ||x_i - y_j||^2 = ||x_i||^2 - 2 x_i^T y_j + ||y_j||^2,

which costs one :math:`\mathcal{O}(nmd)` product plus an :math:`\mathcal{O}(nm)`
correction. The price is cancellation for near-identical observations: the result may
lose most of its significant digits, and may come out slightly negative. Negative
values are clamped to zero by :func:`~kernelcomp.util.clamp_negative`; the loss of
relative precision is accepted. The sine-squared Gram matrix uses the same trick
through :math:`\sin^2(a - b) = (1 - \cos 2a \cos 2b - \sin 2a \sin 2b) / 2`.

Matrix inputs are design matrices whose layout is given explicitly by ``trans``:
``"N"`` if observations are rows and ``"T"`` if observations are columns.
"""

import logging
import math
from abc import abstractmethod
from typing import ClassVar, Optional

import equinox as eqx
import jax
import jax.numpy as jnp
from jax import Array
from jaxtyping import Shaped
from typing_extensions import override

from kernelcomp.util import (
    ParameterDomainError,
    Trans,
    UpLo,
    as_observations,
    clamp_negative,
    pairwise,
)
from kernelcomp.validation import validate_dimensions, validate_in_range, validate_trans

_logger = logging.getLogger(__name__)


def _vector_operands(
    x: Shaped[Array, " d"] | float,
    y: Shaped[Array, " d"] | float,
    w: Optional[Shaped[Array, " d"]] = None,
) -> tuple[Array, Array, Optional[Array]]:
    """Convert the operands to at least one-dimensional arrays of equal length."""
    x = jnp.atleast_1d(jnp.asarray(x))
    y = jnp.atleast_1d(jnp.asarray(y))
    w = None if w is None else jnp.atleast_1d(jnp.asarray(w))
    validate_dimensions(x=x, y=y, w=w)
    return x, y, w


# Scalar product


def scalar_product(
    x: Shaped[Array, " d"] | float,
    y: Shaped[Array, " d"] | float,
    w: Optional[Shaped[Array, " d"]] = None,
) -> Shaped[Array, ""]:
    r"""
    Calculate the (weighted) scalar product of two vectors.

    :param x: First vector :math:`x \in \mathbb{R}^d`
    :param y: Second vector :math:`y \in \mathbb{R}^d`
    :param w: Optional weight vector :math:`w \in \mathbb{R}^d`
    :return: :math:`\sum_i x_i y_i` or :math:`\sum_i x_i y_i w_i`
    :raises DimensionMismatchError: If the operands differ in length
    """
    x, y, w = _vector_operands(x, y, w)
    if w is None:
        return jnp.dot(x, y)
    return jnp.dot(x * w, y)


def scalar_product_grad_x(x, y, w=None) -> Shaped[Array, " d"]:
    """Gradient of :func:`scalar_product` w.r.t. ``x``; ``y`` or ``y * w``."""
    x, y, w = _vector_operands(x, y, w)
    return y if w is None else y * w


def scalar_product_grad_y(x, y, w=None) -> Shaped[Array, " d"]:
    """Gradient of :func:`scalar_product` w.r.t. ``y``; ``x`` or ``x * w``."""
    x, y, w = _vector_operands(x, y, w)
    return x if w is None else x * w


def scalar_product_grad_w(x, y, w) -> Shaped[Array, " d"]:
    """Gradient of the weighted :func:`scalar_product` w.r.t. ``w``; ``x * y``."""
    x, y, w = _vector_operands(x, y, w)
    return x * y


# Squared distance


def squared_distance(
    x: Shaped[Array, " d"] | float,
    y: Shaped[Array, " d"] | float,
    w: Optional[Shaped[Array, " d"]] = None,
) -> Shaped[Array, ""]:
    r"""
    Calculate the (weighted) squared distance between two vectors.

    :param x: First vector :math:`x \in \mathbb{R}^d`
    :param y: Second vector :math:`y \in \mathbb{R}^d`
    :param w: Optional weight vector :math:`w \in \mathbb{R}^d`
    :return: :math:`\sum_i (x_i - y_i)^2` or :math:`\sum_i ((x_i - y_i) w_i)^2`
    :raises DimensionMismatchError: If the operands differ in length
    """
    x, y, w = _vector_operands(x, y, w)
    difference = x - y
    if w is not None:
        difference = difference * w
    return jnp.dot(difference, difference)


def squared_distance_grad_x(x, y, w=None) -> Shaped[Array, " d"]:
    """Gradient of :func:`squared_distance` w.r.t. ``x``; ``2(x - y)(* w^2)``."""
    x, y, w = _vector_operands(x, y, w)
    gradient = 2 * (x - y)
    return gradient if w is None else gradient * w**2


def squared_distance_grad_y(x, y, w=None) -> Shaped[Array, " d"]:
    """Gradient of :func:`squared_distance` w.r.t. ``y``; ``2(y - x)(* w^2)``."""
    x, y, w = _vector_operands(x, y, w)
    gradient = 2 * (y - x)
    return gradient if w is None else gradient * w**2


def squared_distance_grad_w(x, y, w) -> Shaped[Array, " d"]:
    """Gradient of the weighted :func:`squared_distance` w.r.t. ``w``."""
    x, y, w = _vector_operands(x, y, w)
    return 2 * (x - y) ** 2 * w


# Sine squared


def sine_squared(
    x: Shaped[Array, " d"] | float,
    y: Shaped[Array, " d"] | float,
    period: float = math.pi,
    w: Optional[Shaped[Array, " d"]] = None,
) -> Shaped[Array, ""]:
    r"""
    Calculate the (weighted) sine-squared statistic between two vectors.

    :param x: First vector :math:`x \in \mathbb{R}^d`
    :param y: Second vector :math:`y \in \mathbb{R}^d`
    :param period: Frequency :math:`p` applied to the coordinate differences
    :param w: Optional weight vector :math:`w \in \mathbb{R}^d`
    :return: :math:`\sum_i (w_i \sin(p(x_i - y_i)))^2`
    :raises DimensionMismatchError: If the operands differ in length
    """
    x, y, w = _vector_operands(x, y, w)
    sine = jnp.sin(period * (x - y))
    if w is not None:
        sine = sine * w
    return jnp.dot(sine, sine)


def sine_squared_grad_x(x, y, period=math.pi, w=None) -> Shaped[Array, " d"]:
    """Gradient of :func:`sine_squared` w.r.t. ``x``."""
    x, y, w = _vector_operands(x, y, w)
    gradient = period * jnp.sin(2 * period * (x - y))
    return gradient if w is None else gradient * w**2


def sine_squared_grad_y(x, y, period=math.pi, w=None) -> Shaped[Array, " d"]:
    """Gradient of :func:`sine_squared` w.r.t. ``y``."""
    return -sine_squared_grad_x(x, y, period, w)


def sine_squared_grad_w(x, y, period, w) -> Shaped[Array, " d"]:
    """Gradient of the weighted :func:`sine_squared` w.r.t. ``w``."""
    x, y, w = _vector_operands(x, y, w)
    return 2 * jnp.sin(period * (x - y)) ** 2 * w


# Gram matrices


def _symmetrize(
    gram: Shaped[Array, " n n"], uplo: UpLo, symmetric: bool
) -> Shaped[Array, " n n"]:
    """Keep the ``uplo`` triangle of ``gram`` and, if ``symmetric``, mirror it."""
    if uplo == "U":
        triangle = jnp.triu(gram)
        return triangle + jnp.triu(gram, k=1).T if symmetric else triangle
    if uplo == "L":
        triangle = jnp.tril(gram)
        return triangle + jnp.tril(gram, k=-1).T if symmetric else triangle
    raise ValueError(f"'uplo' must be 'U' or 'L', got {uplo!r}")


def _gram_operands(
    x: Shaped[Array, " n d"] | Shaped[Array, " d n"],
    y: Optional[Shaped[Array, " m d"] | Shaped[Array, " d m"]],
    trans: Trans,
    weights: Optional[Shaped[Array, " d"]],
) -> tuple[Array, Optional[Array], Optional[Array]]:
    """Bring the design matrices to row-observation layout and check dimensions."""
    validate_trans(trans)
    x = as_observations(x, trans)
    y = None if y is None else as_observations(y, trans)
    weights = None if weights is None else jnp.asarray(weights)
    validate_dimensions(x=x, y=y, weights=weights)
    return x, y, weights


def gram_scalar_product(
    x: Shaped[Array, " n d"] | Shaped[Array, " d n"],
    y: Optional[Shaped[Array, " m d"] | Shaped[Array, " d m"]] = None,
    trans: Trans = "N",
    *,
    uplo: UpLo = "U",
    symmetric: bool = True,
    weights: Optional[Shaped[Array, " d"]] = None,
) -> Shaped[Array, " n m"]:
    r"""
    Compute all pairwise (weighted) scalar products of the observations.

    With a single design matrix this is :math:`X X^T` (:math:`X^T X` if
    ``trans="T"``); only the ``uplo`` triangle is taken from the product and the
    other triangle is its mirror, so the result is exactly symmetric. With two design
    matrices this is the cross product :math:`X Y^T` (:math:`X^T Y`).

    :param x: Design matrix with :math:`n` observations
    :param y: Optional second design matrix with :math:`m` observations
    :param trans: ``"N"`` if observations are rows, ``"T"`` if they are columns
    :param uplo: Triangle (``"U"`` or ``"L"``) computed for a single design matrix
    :param symmetric: If :data:`False`, a single-matrix result holds only the
        ``uplo`` triangle and zeros elsewhere; ignored when ``y`` is given
    :param weights: Optional per-dimension weights
    :return: Matrix of scalar products, :math:`n \times n` or :math:`n \times m`
    :raises DimensionMismatchError: If the observations differ in dimension
    """
    x, y, weights = _gram_operands(x, y, trans, weights)
    scaled_x = x if weights is None else x * weights
    if y is None:
        _logger.debug("Scalar product Gram matrix of %d observations", x.shape[0])
        return _symmetrize(jnp.dot(scaled_x, x.T), uplo, symmetric)
    _logger.debug(
        "Scalar product cross matrix of %d by %d observations", x.shape[0], y.shape[0]
    )
    return jnp.dot(scaled_x, y.T)


def gram_squared_distance(
    x: Shaped[Array, " n d"] | Shaped[Array, " d n"],
    y: Optional[Shaped[Array, " m d"] | Shaped[Array, " d m"]] = None,
    trans: Trans = "N",
    *,
    uplo: UpLo = "U",
    symmetric: bool = True,
    weights: Optional[Shaped[Array, " d"]] = None,
) -> Shaped[Array, " n m"]:
    r"""
    Compute all pairwise (weighted) squared distances of the observations.

    The distances are derived from the scalar product matrix,
    :math:`D_{ij} = ||x_i||^2 - 2 x_i^T y_j + ||y_j||^2`, where for a single design
    matrix :math:`||x_i||^2` is read from the diagonal of :math:`X X^T`. Entries that
    come out negative through cancellation are clamped to zero, and the diagonal of a
    single-matrix result is exactly zero.

    :param x: Design matrix with :math:`n` observations
    :param y: Optional second design matrix with :math:`m` observations
    :param trans: ``"N"`` if observations are rows, ``"T"`` if they are columns
    :param uplo: Triangle (``"U"`` or ``"L"``) computed for a single design matrix
    :param symmetric: If :data:`False`, a single-matrix result holds only the
        ``uplo`` triangle and zeros elsewhere; ignored when ``y`` is given
    :param weights: Optional per-dimension weights, applied to the coordinate
        differences before squaring
    :return: Matrix of squared distances, :math:`n \times n` or :math:`n \times m`
    :raises DimensionMismatchError: If the observations differ in dimension
    """
    x, y, weights = _gram_operands(x, y, trans, weights)
    if weights is not None:
        x = x * weights
        y = None if y is None else y * weights
    if y is None:
        _logger.debug("Squared distance Gram matrix of %d observations", x.shape[0])
        products = jnp.dot(x, x.T)
        norms = jnp.diag(products)
        distances = norms[:, None] - 2 * products + norms[None, :]
        distances = jnp.fill_diagonal(distances, 0, inplace=False)
        return _symmetrize(clamp_negative(distances), uplo, symmetric)
    _logger.debug(
        "Squared distance cross matrix of %d by %d observations",
        x.shape[0],
        y.shape[0],
    )
    x_norms = jnp.sum(x**2, axis=1)
    y_norms = jnp.sum(y**2, axis=1)
    distances = x_norms[:, None] - 2 * jnp.dot(x, y.T) + y_norms[None, :]
    return clamp_negative(distances)


def gram_sine_squared(
    x: Shaped[Array, " n d"] | Shaped[Array, " d n"],
    y: Optional[Shaped[Array, " m d"] | Shaped[Array, " d m"]] = None,
    trans: Trans = "N",
    *,
    period: float = math.pi,
    uplo: UpLo = "U",
    symmetric: bool = True,
    weights: Optional[Shaped[Array, " d"]] = None,
) -> Shaped[Array, " n m"]:
    r"""
    Compute all pairwise (weighted) sine-squared statistics of the observations.

    Uses :math:`\sin^2(a - b) = \frac{1}{2}(1 - \cos 2a \cos 2b - \sin 2a \sin 2b)`
    so that, as for :func:`gram_squared_distance`, the work is a single matrix product
    of the stacked cosine and sine features plus a correction. Negative round-off is
    clamped to zero.

    :param x: Design matrix with :math:`n` observations
    :param y: Optional second design matrix with :math:`m` observations
    :param trans: ``"N"`` if observations are rows, ``"T"`` if they are columns
    :param period: Frequency :math:`p` applied to the coordinate differences
    :param uplo: Triangle (``"U"`` or ``"L"``) computed for a single design matrix
    :param symmetric: If :data:`False`, a single-matrix result holds only the
        ``uplo`` triangle and zeros elsewhere; ignored when ``y`` is given
    :param weights: Optional per-dimension weights
    :return: Matrix of statistics, :math:`n \times n` or :math:`n \times m`
    :raises DimensionMismatchError: If the observations differ in dimension
    """
    x, y, weights = _gram_operands(x, y, trans, weights)
    squared_weights = (
        jnp.ones(x.shape[1], dtype=x.dtype) if weights is None else weights**2
    )

    def _features(z: Array) -> Array:
        angles = 2 * period * z
        return jnp.concatenate([jnp.cos(angles), jnp.sin(angles)], axis=1)

    x_features = _features(x)
    y_features = x_features if y is None else _features(y)
    stacked_weights = jnp.concatenate([squared_weights, squared_weights])
    products = jnp.dot(x_features * stacked_weights, y_features.T)
    statistic = 0.5 * (jnp.sum(squared_weights) - products)
    if y is None:
        _logger.debug("Sine-squared Gram matrix of %d observations", x.shape[0])
        statistic = jnp.fill_diagonal(statistic, 0, inplace=False)
        return _symmetrize(clamp_negative(statistic), uplo, symmetric)
    _logger.debug(
        "Sine-squared cross matrix of %d by %d observations", x.shape[0], y.shape[0]
    )
    return clamp_negative(statistic)


def gram_squared_distance_grad_x(
    a: float,
    x: Shaped[Array, " n d"] | Shaped[Array, " d n"],
    y: Shaped[Array, " m d"] | Shaped[Array, " d m"],
    trans: Trans = "N",
    block_x: bool = True,
) -> Shaped[Array, " d n m"] | Shaped[Array, " d m n"]:
    r"""
    Compute the scaled coordinate differences :math:`2a(x_i - y_j)_k` of all pairs.

    This is the tensor of per-pair gradients of :math:`a ||x_i - y_j||^2` w.r.t.
    :math:`x_i`, as consumed by the chain rule of kernel gradients.

    - ``block_x=True``: the result :math:`A` has shape :math:`d \times n \times m` and
      :math:`A_{kij} = 2a(x_{ik} - y_{jk})`; each block ``A[:, :, j]`` holds every
      observation of ``x`` differenced by observation ``j`` of ``y``.
    - ``block_x=False``: the result has shape :math:`d \times m \times n` and
      :math:`A_{kji} = 2a(x_{ik} - y_{jk})`; each block ``A[:, :, i]`` holds
      observation ``i`` of ``x`` differenced by every observation of ``y``.

    :param a: Scale factor :math:`a`
    :param x: Design matrix with :math:`n` observations
    :param y: Design matrix with :math:`m` observations
    :param trans: ``"N"`` if observations are rows, ``"T"`` if they are columns
    :param block_x: Block orientation, see above
    :return: Tensor of scaled coordinate differences
    :raises DimensionMismatchError: If ``x`` and ``y`` differ in dimension
    """
    x, y, _ = _gram_operands(x, y, trans, None)
    differences = 2 * a * (x[:, None, :] - y[None, :, :])
    if block_x:
        return jnp.transpose(differences, (2, 0, 1))
    return jnp.transpose(differences, (2, 1, 0))


# Statistic objects


def _as_weights(weights: Optional[Shaped[Array, " d"]]) -> Optional[Array]:
    """Convert optional weights to an array."""
    return None if weights is None else jnp.asarray(weights)


def _validate_weights(weights: Optional[Array]) -> None:
    """Check that optional weights form a non-negative vector."""
    if weights is None:
        return
    if weights.ndim != 1:
        raise ParameterDomainError("'weights' must be a one-dimensional array")
    try:
        negative = bool(jnp.any(weights < 0))
    except jax.errors.ConcretizationTypeError as err:
        raise ValueError(
            "'weights' must be concrete to be validated; construct the statistic "
            "outside of transformations such as 'jax.jit' and replace its weights "
            "with 'equinox.tree_at'"
        ) from err
    if negative:
        raise ParameterDomainError("'weights' must be non-negative")


class PairwiseStatistic(eqx.Module):
    """
    Abstract base class for pairwise statistics.

    The set of statistics is closed: :class:`ScalarProduct`, :class:`SquaredDistance`
    and :class:`SineSquared`. Subclasses carry an optional ``weights`` vector and
    declare through :attr:`is_nonnegative` whether the statistic can be negative.
    """

    is_nonnegative: ClassVar[bool]

    @abstractmethod
    def compute_elementwise(self, x, y) -> Shaped[Array, ""]:
        r"""
        Evaluate the statistic on two vectors.

        :param x: Vector :math:`x \in \mathbb{R}^d`
        :param y: Vector :math:`y \in \mathbb{R}^d`
        :return: Statistic evaluated at (``x``, ``y``)
        """

    @abstractmethod
    def grad_x_elementwise(self, x, y) -> Shaped[Array, " d"]:
        """Evaluate the gradient of the statistic w.r.t. ``x``."""

    @abstractmethod
    def grad_y_elementwise(self, x, y) -> Shaped[Array, " d"]:
        """Evaluate the gradient of the statistic w.r.t. ``y``."""

    @abstractmethod
    def grad_w_elementwise(self, x, y) -> Shaped[Array, " d"]:
        """Evaluate the gradient of the statistic w.r.t. the weights."""

    @abstractmethod
    def compute(
        self,
        x: Shaped[Array, " n d"] | Shaped[Array, " d n"],
        y: Optional[Shaped[Array, " m d"] | Shaped[Array, " d m"]] = None,
        trans: Trans = "N",
        *,
        uplo: UpLo = "U",
        symmetric: bool = True,
    ) -> Shaped[Array, " n m"]:
        r"""
        Evaluate the statistic between every pair of observations.

        :param x: Design matrix with :math:`n` observations
        :param y: Optional second design matrix with :math:`m` observations; if
            :data:`None` the symmetric Gram matrix of ``x`` is returned
        :param trans: ``"N"`` if observations are rows, ``"T"`` if they are columns
        :param uplo: Triangle computed for a single design matrix
        :param symmetric: Whether to mirror the computed triangle
        :return: :math:`n \times n` or :math:`n \times m` matrix of statistics
        """

    def grad_x(
        self,
        x: Shaped[Array, " n d"] | Shaped[Array, " d n"],
        y: Shaped[Array, " m d"] | Shaped[Array, " d m"],
        trans: Trans = "N",
    ) -> Shaped[Array, " n m d"]:
        r"""
        Evaluate the gradient w.r.t. ``x`` for every pair of observations.

        :param x: Design matrix with :math:`n` observations
        :param y: Design matrix with :math:`m` observations
        :param trans: ``"N"`` if observations are rows, ``"T"`` if they are columns
        :return: :math:`n \times m \times d` array of pairwise gradients
        """
        x, y, _ = _gram_operands(x, y, trans, None)
        return pairwise(self.grad_x_elementwise)(x, y)

    def grad_y(
        self,
        x: Shaped[Array, " n d"] | Shaped[Array, " d n"],
        y: Shaped[Array, " m d"] | Shaped[Array, " d m"],
        trans: Trans = "N",
    ) -> Shaped[Array, " n m d"]:
        r"""
        Evaluate the gradient w.r.t. ``y`` for every pair of observations.

        :param x: Design matrix with :math:`n` observations
        :param y: Design matrix with :math:`m` observations
        :param trans: ``"N"`` if observations are rows, ``"T"`` if they are columns
        :return: :math:`n \times m \times d` array of pairwise gradients
        """
        x, y, _ = _gram_operands(x, y, trans, None)
        return pairwise(self.grad_y_elementwise)(x, y)

    def _require_weights(self) -> Array:
        """Return the weights, raising if the statistic is unweighted."""
        weights = getattr(self, "weights", None)
        if weights is None:
            raise ValueError(
                f"'{type(self).__name__}' is unweighted; the gradient w.r.t. the"
                + " weights is undefined"
            )
        return weights


class ScalarProduct(PairwiseStatistic):
    r"""
    Define the (weighted) scalar product statistic, :math:`\sum_i x_i y_i w_i`.

    :param weights: Optional non-negative per-dimension weights, which must be
        concrete when the statistic is constructed
    """

    weights: Optional[Array] = eqx.field(default=None, converter=_as_weights)

    is_nonnegative: ClassVar[bool] = False

    def __check_init__(self):
        """Check that the weights are valid."""
        _validate_weights(self.weights)

    @override
    def compute_elementwise(self, x, y):
        return scalar_product(x, y, self.weights)

    @override
    def grad_x_elementwise(self, x, y):
        return scalar_product_grad_x(x, y, self.weights)

    @override
    def grad_y_elementwise(self, x, y):
        return scalar_product_grad_y(x, y, self.weights)

    @override
    def grad_w_elementwise(self, x, y):
        return scalar_product_grad_w(x, y, self._require_weights())

    @override
    def compute(self, x, y=None, trans="N", *, uplo="U", symmetric=True):
        return gram_scalar_product(
            x, y, trans, uplo=uplo, symmetric=symmetric, weights=self.weights
        )

    @override
    def grad_x(self, x, y, trans="N"):
        x, y, weights = _gram_operands(x, y, trans, self.weights)
        gradient = y if weights is None else y * weights
        return jnp.broadcast_to(gradient[None, :, :], (x.shape[0], *y.shape))

    @override
    def grad_y(self, x, y, trans="N"):
        x, y, weights = _gram_operands(x, y, trans, self.weights)
        gradient = x if weights is None else x * weights
        return jnp.broadcast_to(
            gradient[:, None, :], (x.shape[0], y.shape[0], x.shape[1])
        )


class SquaredDistance(PairwiseStatistic):
    r"""
    Define the (weighted) squared distance statistic, :math:`\sum_i ((x_i-y_i)w_i)^2`.

    :param weights: Optional non-negative per-dimension weights, which must be
        concrete when the statistic is constructed
    """

    weights: Optional[Array] = eqx.field(default=None, converter=_as_weights)

    is_nonnegative: ClassVar[bool] = True

    def __check_init__(self):
        """Check that the weights are valid."""
        _validate_weights(self.weights)

    @override
    def compute_elementwise(self, x, y):
        return squared_distance(x, y, self.weights)

    @override
    def grad_x_elementwise(self, x, y):
        return squared_distance_grad_x(x, y, self.weights)

    @override
    def grad_y_elementwise(self, x, y):
        return squared_distance_grad_y(x, y, self.weights)

    @override
    def grad_w_elementwise(self, x, y):
        return squared_distance_grad_w(x, y, self._require_weights())

    @override
    def compute(self, x, y=None, trans="N", *, uplo="U", symmetric=True):
        return gram_squared_distance(
            x, y, trans, uplo=uplo, symmetric=symmetric, weights=self.weights
        )

    @override
    def grad_x(self, x, y, trans="N"):
        _, _, weights = _gram_operands(x, y, trans, self.weights)
        differences = gram_squared_distance_grad_x(1.0, x, y, trans, block_x=True)
        gradient = jnp.moveaxis(differences, 0, -1)
        return gradient if weights is None else gradient * weights**2

    @override
    def grad_y(self, x, y, trans="N"):
        return -self.grad_x(x, y, trans)


class SineSquared(PairwiseStatistic):
    r"""
    Define the (weighted) sine-squared statistic, :math:`\sum_i (w_i \sin(p d_i))^2`.

    Here :math:`d = x - y` are the coordinate differences.

    :param period: Frequency :math:`p` applied to the coordinate differences, must be
        positive
    :param weights: Optional non-negative per-dimension weights, which must be
        concrete when the statistic is constructed
    """

    period: float = eqx.field(default=math.pi, converter=float)
    weights: Optional[Array] = eqx.field(default=None, converter=_as_weights)

    is_nonnegative: ClassVar[bool] = True

    def __check_init__(self):
        """Check that the period and weights are valid."""
        validate_in_range(self.period, "'period'", True, lower_bound=0)
        _validate_weights(self.weights)

    @override
    def compute_elementwise(self, x, y):
        return sine_squared(x, y, self.period, self.weights)

    @override
    def grad_x_elementwise(self, x, y):
        return sine_squared_grad_x(x, y, self.period, self.weights)

    @override
    def grad_y_elementwise(self, x, y):
        return sine_squared_grad_y(x, y, self.period, self.weights)

    @override
    def grad_w_elementwise(self, x, y):
        return sine_squared_grad_w(x, y, self.period, self._require_weights())

    @override
    def compute(self, x, y=None, trans="N", *, uplo="U", symmetric=True):
        return gram_sine_squared(
            x,
            y,
            trans,
            period=self.period,
            uplo=uplo,
            symmetric=symmetric,
            weights=self.weights,
        )
