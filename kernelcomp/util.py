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
Functionality to perform simple, generic tasks and operations.

The functions within this module are small helpers shared by the pairwise statistics,
composition classes and kernel compositions: the error types raised across the
library, the pairwise transform used to vectorise elementwise functions, clamping of
round-off negatives and padding of arrays for block-wise evaluation.
"""

from collections.abc import Callable
from functools import wraps
from typing import Literal, Union

import jax.numpy as jnp
from jax import Array, vmap
from jaxtyping import Shaped
from typing_extensions import TypeAlias

#: Layout flag of a design matrix; ``"N"`` if rows are observations and ``"T"`` if
#: columns are observations.
Trans: TypeAlias = Literal["N", "T"]
#: Triangle of a symmetric matrix that is computed directly.
UpLo: TypeAlias = Literal["U", "L"]


class DimensionMismatchError(ValueError):
    """Raise when operand vectors or matrices have incompatible lengths."""


class ParameterDomainError(ValueError):
    """Raise when a parameter is constructed outside of its valid domain."""


def clamp_negative(
    x: Union[Shaped[Array, " *shape"], float],
) -> Shaped[Array, " *shape"]:
    """
    Replace negative entries of ``x`` with zero.

    Squared distances recovered from scalar products through
    :math:`||x||^2 - 2 x^T y + ||y||^2` suffer from cancellation for near-identical
    points and can come out slightly negative. Many composition classes are undefined
    for negative input, so such values are clamped rather than propagated.

    :param x: Array (or scalar) that should be non-negative
    :return: ``x`` with every negative entry replaced by zero
    """
    _x = jnp.asarray(x)
    return jnp.maximum(_x, jnp.zeros((), dtype=_x.dtype))


def pairwise(
    fn: Callable[[Shaped[Array, " d"], Shaped[Array, " d"]], Shaped[Array, " *shape"]],
) -> Callable[..., Shaped[Array, " n m *shape"]]:
    r"""
    Vectorise an elementwise function over every pair of observations.

    The returned function takes design matrices ``x`` and ``y`` with :math:`n` and
    :math:`m` observations, and an optional layout flag ``trans``. It returns the
    :math:`n \times m` grid of ``fn(x_i, y_j)``, keeping any trailing axes of the
    output of ``fn``. With ``trans="N"`` a single observation may be passed as a
    vector.

    :param fn: Function of one observation from each design matrix
    :return: The pairwise version of ``fn``
    """

    @wraps(fn)
    def pairwise_fn(
        x: Shaped[Array, " n d"] | Shaped[Array, " d n"],
        y: Shaped[Array, " m d"] | Shaped[Array, " d m"],
        trans: Trans = "N",
    ) -> Shaped[Array, " n m *shape"]:
        x = as_observations(jnp.atleast_2d(x), trans)
        y = as_observations(jnp.atleast_2d(y), trans)
        over_y = vmap(fn, in_axes=(None, 0))
        return vmap(over_y, in_axes=(0, None))(x, y)

    return pairwise_fn


def as_observations(
    x: Shaped[Array, " n d"] | Shaped[Array, " d n"], trans: Trans = "N"
) -> Shaped[Array, " n d"]:
    r"""
    Return a design matrix with one observation per row.

    :param x: Design matrix, either :math:`n \times d` or :math:`d \times n`
    :param trans: ``"N"`` if rows of ``x`` are observations, ``"T"`` if columns are
    :return: The :math:`n \times d` view of ``x``
    """
    _x = jnp.asarray(x)
    if _x.ndim != 2:  # noqa: PLR2004
        raise ValueError(f"'x' must be a two-dimensional array, got {_x.ndim} dims")
    return _x.T if trans == "T" else _x


def zero_pad_leading_axis(
    x: Shaped[Array, " n *shape"], pad_width: int
) -> Shaped[Array, " n + pad_width *shape"]:
    """
    Pad ``x`` with ``pad_width`` trailing zero rows.

    :param x: The array whose leading axis to pad with trailing zeros
    :param pad_width: The number of trailing zero rows to pad with
    :return: A copy of ``x`` with the leading axis padded
    """
    if int(pad_width) < 0:
        raise ValueError("'pad_width' must be a non-negative integer")
    padding = (0, int(pad_width))
    skip_padding = ((0, 0),) * (jnp.ndim(x) - 1)
    return jnp.pad(x, (padding, *skip_padding))
