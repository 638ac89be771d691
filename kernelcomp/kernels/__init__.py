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


"""Kernels composed from a link function and a pairwise statistic."""

from kernelcomp.kernels.base import KernelComposition
from kernelcomp.kernels.named import (
    GaussianKernel,
    LaplacianKernel,
    LinearKernel,
    MaternKernel,
    PeriodicKernel,
    PolynomialKernel,
    RadialBasisKernel,
    RationalQuadraticKernel,
    SigmoidKernel,
    SquaredExponentialKernel,
)

__all__ = [
    "KernelComposition",
    "GaussianKernel",
    "SquaredExponentialKernel",
    "RadialBasisKernel",
    "LaplacianKernel",
    "PeriodicKernel",
    "RationalQuadraticKernel",
    "MaternKernel",
    "PolynomialKernel",
    "LinearKernel",
    "SigmoidKernel",
]
