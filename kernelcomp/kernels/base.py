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
Kernels built by composing a link function with a pairwise statistic.

A :class:`KernelComposition` pairs a
:class:`~kernelcomp.compositions.CompositionClass` :math:`\phi` with a
:class:`~kernelcomp.statistics.PairwiseStatistic` :math:`\psi` and evaluates

.. math::

    k(x, y) = \phi(\psi(x, y)).

Kernel matrices are built in two stages: the Gram matrix of the statistic is computed
with dense matrix products (see :mod:`kernelcomp.statistics`), then :math:`\phi` is
applied elementwise. Gradients follow from the chain rule,

.. math::

    \nabla_x k(x, y) = \phi'(\psi(x, y)) \nabla_x \psi(x, y),

and the gradients w.r.t. the parameters of :math:`\phi` are reported in the order of
:attr:`KernelComposition.parameter_names`.

Not every pairing is meaningful. Link functions such as the exponential are only
defined for a non-negative statistic, so pairing them with the scalar product raises
:class:`ValueError` on construction.
"""

import logging
from typing import Optional

import equinox as eqx
import jax
from jax import Array
from jaxtyping import Shaped

from kernelcomp.compositions import CompositionClass
from kernelcomp.kernels.util import _block_rows
from kernelcomp.statistics import PairwiseStatistic, _gram_operands, _symmetrize
from kernelcomp.util import Trans, UpLo, pairwise
from kernelcomp.validation import validate_is_instance

_logger = logging.getLogger(__name__)


class KernelComposition(eqx.Module):
    """
    Define a kernel as a composition class applied to a pairwise statistic.

    :param composition: Instance of :class:`~kernelcomp.compositions.CompositionClass`
    :param statistic: Instance of :class:`~kernelcomp.statistics.PairwiseStatistic`
    """

    composition: CompositionClass
    statistic: PairwiseStatistic

    def __check_init__(self):
        """Ensure the composition and statistic are valid and compatible."""
        validate_is_instance(self.composition, "'composition'", CompositionClass)
        validate_is_instance(self.statistic, "'statistic'", PairwiseStatistic)
        if self.composition.requires_nonnegative and not self.statistic.is_nonnegative:
            raise ValueError(
                f"'{type(self.composition).__name__}' requires a non-negative"
                + f" statistic, but '{type(self.statistic).__name__}' can be negative"
            )

    @property
    def parameter_names(self) -> tuple[str, ...]:
        """Names of the parameters reported by the ``grad_params`` methods."""
        return self.composition.parameter_names

    def compute_elementwise(
        self, x: Shaped[Array, " d"], y: Shaped[Array, " d"]
    ) -> Shaped[Array, ""]:
        r"""
        Evaluate the kernel on two vectors.

        :param x: Vector :math:`x \in \mathbb{R}^d`
        :param y: Vector :math:`y \in \mathbb{R}^d`
        :return: Kernel evaluated at (``x``, ``y``)
        """
        return self.composition.compute(self.statistic.compute_elementwise(x, y))

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
        Evaluate the kernel matrix :math:`K_{ij} = k(x_i, y_j)`.

        :param x: Design matrix with :math:`n` observations
        :param y: Optional second design matrix with :math:`m` observations; if
            :data:`None` the symmetric kernel matrix of ``x`` is returned
        :param trans: ``"N"`` if observations are rows, ``"T"`` if they are columns
        :param uplo: Triangle computed for a single design matrix
        :param symmetric: If :data:`False`, a single-matrix result holds only the
            ``uplo`` triangle and zeros elsewhere
        :return: :math:`n \times n` or :math:`n \times m` kernel matrix
        """
        statistic = self.statistic.compute(x, y, trans, uplo=uplo)
        kernel_matrix = self.composition.compute(statistic)
        if y is None and not symmetric:
            return _symmetrize(kernel_matrix, uplo, symmetric=False)
        return kernel_matrix

    def compute_blocked(
        self,
        x: Shaped[Array, " n d"] | Shaped[Array, " d n"],
        y: Optional[Shaped[Array, " m d"] | Shaped[Array, " d m"]] = None,
        trans: Trans = "N",
        *,
        block_size: int,
    ) -> Shaped[Array, " n m"]:
        r"""
        Evaluate the kernel matrix one block of rows of ``x`` at a time.

        The blocks are independent and are evaluated with :func:`jax.lax.map`, so
        peak memory for the statistic is :math:`\mathcal{O}(B m)` rather than
        :math:`\mathcal{O}(n m)` intermediate products. ``x`` is padded with zero rows
        to a whole number of blocks; the padded rows are dropped from the result.

        Each block is computed in the cross form, so for a single design matrix the
        diagonal of a distance-based kernel may differ from :meth:`compute` by
        rounding.

        :param x: Design matrix with :math:`n` observations
        :param y: Optional second design matrix with :math:`m` observations; if
            :data:`None`, ``x`` is used
        :param trans: ``"N"`` if observations are rows, ``"T"`` if they are columns
        :param block_size: Number of rows of ``x`` per block, must be a positive
            integer; values above :math:`n` are reduced to :math:`n`
        :return: :math:`n \times m` kernel matrix
        """
        x, y, _ = _gram_operands(x, y, trans, None)
        y = x if y is None else y
        blocks, num_rows = _block_rows(x, block_size)
        _logger.debug(
            "Blocked kernel matrix: %d blocks of %d rows against %d observations",
            blocks.shape[0],
            blocks.shape[1],
            y.shape[0],
        )

        def _block(x_block: Shaped[Array, " block_size d"]) -> Array:
            return self.composition.compute(self.statistic.compute(x_block, y))

        kernel_blocks = jax.lax.map(_block, blocks)
        return kernel_blocks.reshape(-1, y.shape[0])[:num_rows]

    def grad_x_elementwise(
        self, x: Shaped[Array, " d"], y: Shaped[Array, " d"]
    ) -> Shaped[Array, " d"]:
        """Evaluate the gradient of the kernel w.r.t. ``x``."""
        z = self.statistic.compute_elementwise(x, y)
        return self.composition.grad_z(z) * self.statistic.grad_x_elementwise(x, y)

    def grad_y_elementwise(
        self, x: Shaped[Array, " d"], y: Shaped[Array, " d"]
    ) -> Shaped[Array, " d"]:
        """Evaluate the gradient of the kernel w.r.t. ``y``."""
        z = self.statistic.compute_elementwise(x, y)
        return self.composition.grad_z(z) * self.statistic.grad_y_elementwise(x, y)

    def grad_w_elementwise(
        self, x: Shaped[Array, " d"], y: Shaped[Array, " d"]
    ) -> Shaped[Array, " d"]:
        """
        Evaluate the gradient of the kernel w.r.t. the statistic's weights.

        :raises ValueError: If the statistic is unweighted
        """
        z = self.statistic.compute_elementwise(x, y)
        return self.composition.grad_z(z) * self.statistic.grad_w_elementwise(x, y)

    def grad_params_elementwise(
        self, x: Shaped[Array, " d"], y: Shaped[Array, " d"]
    ) -> tuple[Shaped[Array, ""], ...]:
        """
        Evaluate the gradients of the kernel w.r.t. the composition's parameters.

        :param x: Vector :math:`x`
        :param y: Vector :math:`y`
        :return: One gradient per entry of :attr:`parameter_names`
        """
        return self.composition.grad_params(self.statistic.compute_elementwise(x, y))

    def grad_x(
        self,
        x: Shaped[Array, " n d"] | Shaped[Array, " d n"],
        y: Shaped[Array, " m d"] | Shaped[Array, " d m"],
        trans: Trans = "N",
    ) -> Shaped[Array, " n m d"]:
        r"""
        Evaluate the gradient w.r.t. ``x`` of the kernel at every pair of observations.

        :param x: Design matrix with :math:`n` observations
        :param y: Design matrix with :math:`m` observations
        :param trans: ``"N"`` if observations are rows, ``"T"`` if they are columns
        :return: :math:`n \times m \times d` array with entry :math:`(i, j)` holding
            :math:`\nabla_x k(x_i, y_j)`
        """
        outer = self.composition.grad_z(self.statistic.compute(x, y, trans))
        return outer[:, :, None] * self.statistic.grad_x(x, y, trans)

    def grad_y(
        self,
        x: Shaped[Array, " n d"] | Shaped[Array, " d n"],
        y: Shaped[Array, " m d"] | Shaped[Array, " d m"],
        trans: Trans = "N",
    ) -> Shaped[Array, " n m d"]:
        r"""
        Evaluate the gradient w.r.t. ``y`` of the kernel at every pair of observations.

        :param x: Design matrix with :math:`n` observations
        :param y: Design matrix with :math:`m` observations
        :param trans: ``"N"`` if observations are rows, ``"T"`` if they are columns
        :return: :math:`n \times m \times d` array with entry :math:`(i, j)` holding
            :math:`\nabla_y k(x_i, y_j)`
        """
        outer = self.composition.grad_z(self.statistic.compute(x, y, trans))
        return outer[:, :, None] * self.statistic.grad_y(x, y, trans)

    def grad_w(
        self,
        x: Shaped[Array, " n d"] | Shaped[Array, " d n"],
        y: Shaped[Array, " m d"] | Shaped[Array, " d m"],
        trans: Trans = "N",
    ) -> Shaped[Array, " n m d"]:
        r"""
        Evaluate the gradient w.r.t. the weights at every pair of observations.

        :return: :math:`n \times m \times d` array of pairwise weight gradients
        :raises ValueError: If the statistic is unweighted
        """
        x, y, _ = _gram_operands(x, y, trans, None)
        return pairwise(self.grad_w_elementwise)(x, y)

    def grad_params(
        self,
        x: Shaped[Array, " n d"] | Shaped[Array, " d n"],
        y: Optional[Shaped[Array, " m d"] | Shaped[Array, " d m"]] = None,
        trans: Trans = "N",
    ) -> tuple[Shaped[Array, " n m"], ...]:
        r"""
        Evaluate the gradients of the kernel matrix w.r.t. the composition parameters.

        :param x: Design matrix with :math:`n` observations
        :param y: Optional second design matrix with :math:`m` observations
        :param trans: ``"N"`` if observations are rows, ``"T"`` if they are columns
        :return: One :math:`n \times n` or :math:`n \times m` matrix per entry of
            :attr:`parameter_names`
        """
        return self.composition.grad_params(self.statistic.compute(x, y, trans))
