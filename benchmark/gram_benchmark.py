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
Benchmark the construction of kernel matrices.

For several kernels and data sizes, the benchmark times:
1. The two-stage construction (statistic Gram matrix, then composition class).
2. The naive construction evaluating the elementwise kernel on every pair.
3. The blocked two-stage construction.

Results are logged and saved to a JSON file.
"""

import json
import logging

import jax.random as jr

from kernelcomp.benchmark import compare_gram_strategies
from kernelcomp.kernels import GaussianKernel, PeriodicKernel, PolynomialKernel


def main() -> None:
    """Perform the benchmark."""
    logging.basicConfig(level=logging.INFO)

    kernels = {
        "gaussian": GaussianKernel(alpha=0.5),
        "polynomial": PolynomialKernel(alpha=0.1, c=1.0, degree=3),
        "periodic": PeriodicKernel(alpha=0.5, period=2.0),
    }
    data_sizes = [100, 500, 2_000]
    dimension = 10

    all_results = {}
    for size in data_sizes:
        x = jr.normal(jr.key(size), (size, dimension))
        all_results[size] = {
            name: compare_gram_strategies(
                kernel, x, num_runs=5, block_size=max(size // 4, 1)
            )
            for name, kernel in kernels.items()
        }

    with open("gram_benchmark_results.json", "w", encoding="utf-8") as f:
        json.dump(all_results, f, indent=2)


if __name__ == "__main__":
    main()
