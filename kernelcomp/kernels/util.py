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


"""Utility functions for the kernels subpackage."""

from math import ceil

from jax import Array
from jaxtyping import Shaped

from kernelcomp.util import zero_pad_leading_axis
from kernelcomp.validation import validate_positive_integer


def _block_rows(
    x: Shaped[Array, " n d"], block_size: int
) -> tuple[Shaped[Array, " b block_size d"], int]:
    """Split the rows of 'x' into zero-padded blocks of size 'block_size'."""
    block_size = validate_positive_integer(block_size, "'block_size'")
    num_rows = x.shape[0]
    if num_rows == 0:
        raise ValueError("'x' must not be empty")
    block_size = min(block_size, num_rows)
    padding = ceil(num_rows / block_size) * block_size - num_rows
    padded_x = zero_pad_leading_axis(x, padding)
    return padded_x.reshape(-1, block_size, *x.shape[1:]), num_rows
