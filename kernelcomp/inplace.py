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
Pairwise statistic gradients written into caller-supplied buffers.

JAX arrays are immutable, so the functions in :mod:`kernelcomp.statistics` always
allocate their result. The functions here are the buffer-reusing counterparts for
host-side hot loops: each writes the gradient into a writeable :class:`numpy.ndarray`
``out`` and returns it.

Aliasing contract: ``out`` must not share memory with any operand. This holds for
every function in this module and is checked on each call; an aliasing ``out`` raises
:class:`ValueError` rather than silently overwriting an input.
"""

from typing import Optional

import numpy as np
from numpy.typing import ArrayLike

from kernelcomp.validation import validate_dimensions


def _prepare(
    out: np.ndarray, w_required: bool = False, **operands: Optional[ArrayLike]
) -> dict[str, Optional[np.ndarray]]:
    """Validate ``out`` against the operands and return the operands as arrays."""
    if not isinstance(out, np.ndarray):
        raise ValueError("'out' must be a numpy.ndarray")
    if not out.flags.writeable:
        raise ValueError("'out' must be writeable")
    if not np.issubdtype(out.dtype, np.floating):
        raise ValueError("'out' must have a floating point dtype")
    if w_required and operands.get("w") is None:
        raise ValueError("'w' is required")
    arrays = {
        name: None if value is None else np.atleast_1d(np.asarray(value))
        for name, value in operands.items()
    }
    validate_dimensions(out=out, **arrays)
    for name, value in arrays.items():
        if value is not None and value.shape != out.shape:
            raise ValueError(
                f"'out' has shape {out.shape} but '{name}' has shape {value.shape}"
            )
    for name, value in operands.items():
        if isinstance(value, np.ndarray) and np.shares_memory(out, value):
            raise ValueError(f"'out' must not share memory with '{name}'")
    return arrays


def scalar_product_grad_x_into(
    out: np.ndarray, x: ArrayLike, y: ArrayLike, w: Optional[ArrayLike] = None
) -> np.ndarray:
    """
    Write the gradient of the scalar product w.r.t. ``x`` into ``out``.

    :param out: Buffer receiving ``y`` (or ``y * w``); must not alias an operand
    :param x: First vector
    :param y: Second vector
    :param w: Optional weights
    :return: ``out``
    """
    operands = _prepare(out, x=x, y=y, w=w)
    if operands["w"] is None:
        np.copyto(out, operands["y"])
    else:
        np.multiply(operands["y"], operands["w"], out=out)
    return out


def scalar_product_grad_y_into(
    out: np.ndarray, x: ArrayLike, y: ArrayLike, w: Optional[ArrayLike] = None
) -> np.ndarray:
    """Write the gradient of the scalar product w.r.t. ``y`` into ``out``."""
    operands = _prepare(out, x=x, y=y, w=w)
    if operands["w"] is None:
        np.copyto(out, operands["x"])
    else:
        np.multiply(operands["x"], operands["w"], out=out)
    return out


def scalar_product_grad_w_into(
    out: np.ndarray, x: ArrayLike, y: ArrayLike, w: ArrayLike
) -> np.ndarray:
    """Write the gradient of the weighted scalar product w.r.t. ``w`` into ``out``."""
    operands = _prepare(out, w_required=True, x=x, y=y, w=w)
    return np.multiply(operands["x"], operands["y"], out=out)


def squared_distance_grad_x_into(
    out: np.ndarray, x: ArrayLike, y: ArrayLike, w: Optional[ArrayLike] = None
) -> np.ndarray:
    """
    Write the gradient of the squared distance w.r.t. ``x`` into ``out``.

    :param out: Buffer receiving ``2(x - y)`` (or ``2(x - y) * w**2``); must not
        alias an operand
    :param x: First vector
    :param y: Second vector
    :param w: Optional weights
    :return: ``out``
    """
    operands = _prepare(out, x=x, y=y, w=w)
    np.subtract(operands["x"], operands["y"], out=out)
    out *= 2
    if operands["w"] is not None:
        out *= operands["w"] ** 2
    return out


def squared_distance_grad_y_into(
    out: np.ndarray, x: ArrayLike, y: ArrayLike, w: Optional[ArrayLike] = None
) -> np.ndarray:
    """Write the gradient of the squared distance w.r.t. ``y`` into ``out``."""
    squared_distance_grad_x_into(out, x, y, w)
    return np.negative(out, out=out)


def squared_distance_grad_w_into(
    out: np.ndarray, x: ArrayLike, y: ArrayLike, w: ArrayLike
) -> np.ndarray:
    """Write the gradient of the weighted squared distance w.r.t. ``w`` into ``out``."""
    operands = _prepare(out, w_required=True, x=x, y=y, w=w)
    np.subtract(operands["x"], operands["y"], out=out)
    np.square(out, out=out)
    out *= 2 * operands["w"]
    return out
