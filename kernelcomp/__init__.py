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
Kernelcomp: kernel functions composed from a link function and a pairwise statistic.

A kernel :math:`k(x, y) = \phi(\psi(x, y))` is built by applying a scalar composition
class :math:`\phi` (exponential, rational quadratic, polynomial, ...) to a pairwise
statistic :math:`\psi` (scalar product, squared distance or sine-squared). Kernel
matrices and their gradients w.r.t. the inputs, the weights and the composition
parameters are computed from dense matrix products in JAX.
"""

__version__ = "0.1.0"

from kernelcomp.compositions import (
    CompositionClass,
    ExponentialClass,
    MaternClass,
    PolynomialClass,
    RationalQuadraticClass,
    SigmoidClass,
    TranslationScaleClass,
)
from kernelcomp.kernels import (
    GaussianKernel,
    KernelComposition,
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
from kernelcomp.statistics import (
    PairwiseStatistic,
    ScalarProduct,
    SineSquared,
    SquaredDistance,
)
from kernelcomp.util import DimensionMismatchError, ParameterDomainError

__all__ = [
    "PairwiseStatistic",
    "ScalarProduct",
    "SquaredDistance",
    "SineSquared",
    "CompositionClass",
    "ExponentialClass",
    "RationalQuadraticClass",
    "PolynomialClass",
    "TranslationScaleClass",
    "SigmoidClass",
    "MaternClass",
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
    "DimensionMismatchError",
    "ParameterDomainError",
]
