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
Timing helpers for comparing ways of building kernel matrices.

The two-stage construction in :meth:`~kernelcomp.kernels.KernelComposition.compute`
builds the statistic's Gram matrix with a dense matrix product and then applies the
composition class. The helpers here time it against the naive construction, which
evaluates :meth:`~kernelcomp.kernels.KernelComposition.compute_elementwise` for every
pair of observations, and against the blocked construction.
"""

import logging
import time
from collections.abc import Callable
from typing import Optional

import equinox as eqx
import numpy as np
from jax import Array, block_until_ready
from jaxtyping import Shaped

from kernelcomp.kernels import KernelComposition
from kernelcomp.util import pairwise
from kernelcomp.validation import validate_positive_integer

_logger = logging.getLogger(__name__)


def time_jit(fn: Callable, *args, **kwargs) -> tuple[float, float]:
    """
    Measure the compilation and execution time of a JIT-compiled function.

    The function is wrapped with :func:`equinox.filter_jit` and called twice with the
    supplied arguments. The first call includes compilation, the second does not, so
    their difference estimates the compilation time.

    :param fn: JIT-compilable function to time
    :param args: Positional arguments passed to ``fn``
    :param kwargs: Keyword arguments passed to ``fn``
    :return: (Compilation time, execution time), in seconds
    """
    @eqx.filter_jit
    def _fn(*_args, **_kwargs):
        return fn(*_args, **_kwargs)

    start_time = time.perf_counter()
    block_until_ready(_fn(*args, **kwargs))
    pre_delta = time.perf_counter() - start_time

    start_time = time.perf_counter()
    block_until_ready(_fn(*args, **kwargs))
    post_delta = time.perf_counter() - start_time

    return pre_delta - post_delta, post_delta


#: Units below minutes, largest first, with their length in seconds.
_TIME_UNITS = (("s", 1.0), ("ms", 1e-3), ("μs", 1e-6), ("ns", 1e-9))


def format_time(seconds: float) -> str:
    """
    Render a duration in the largest unit that keeps its magnitude at least one.

    For example 0.4531 is rendered as ``"453.1 ms"``. Durations of 100 seconds or
    more are given in minutes, and anything shorter than a nanosecond in nanoseconds.

    :param seconds: Duration in seconds
    :return: Duration rounded to two decimal places, followed by its unit
    """
    if seconds == 0:
        return "0 s"
    if abs(seconds) >= 100:  # noqa: PLR2004
        return f"{round(seconds / 60, 2)} mins"
    for unit, length in _TIME_UNITS:
        if abs(seconds) >= length:
            break
    return f"{round(seconds / length, 2)} {unit}"


def compare_gram_strategies(
    kernel: KernelComposition,
    x: Shaped[Array, " n d"],
    num_runs: int = 10,
    block_size: Optional[int] = None,
) -> dict[str, tuple[float, float]]:
    """
    Time the construction of the kernel matrix of ``x`` by several strategies.

    The strategies are ``"two-stage"`` (:meth:`KernelComposition.compute`),
    ``"pairwise"`` (nested :func:`jax.vmap` of the elementwise kernel) and, if
    ``block_size`` is given, ``"blocked"`` (:meth:`KernelComposition.compute_blocked`).

    :param kernel: Kernel whose matrix is built
    :param x: Design matrix with observations in rows
    :param num_runs: Number of times to average the timings over
    :param block_size: Optional block size for the blocked strategy
    :return: Dictionary from strategy name to mean (compilation, execution) time in
        seconds
    """
    num_runs = validate_positive_integer(num_runs, "'num_runs'")
    strategies: dict[str, Callable] = {
        "two-stage": lambda k, data: k.compute(data),
        "pairwise": lambda k, data: pairwise(k.compute_elementwise)(data, data),
    }
    if block_size is not None:
        strategies["blocked"] = lambda k, data: k.compute_blocked(
            data, block_size=block_size
        )

    results = {}
    for name, strategy in strategies.items():
        timings = np.array([time_jit(strategy, kernel, x) for _ in range(num_runs)])
        mean = timings.mean(axis=0)
        std = timings.std(axis=0)
        _logger.info("------------------- %s -------------------", name)
        _logger.info(
            "Compilation time: %s ± %s per run (mean ± std. dev. of %s runs)",
            format_time(mean[0]),
            format_time(std[0]),
            num_runs,
        )
        _logger.info(
            "Execution time: %s ± %s per run (mean ± std. dev. of %s runs)",
            format_time(mean[1]),
            format_time(std[1]),
            num_runs,
        )
        results[name] = (float(mean[0]), float(mean[1]))
    return results
