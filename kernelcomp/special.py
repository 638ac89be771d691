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
Special functions not provided by :mod:`jax.scipy.special`.

The Matérn composition class needs the modified Bessel function of the second kind
:math:`K_\nu` for real order :math:`\nu`. JAX only ships integer orders, so the SciPy
implementation is called on the host through :func:`jax.pure_callback`. The wrapped
function is JIT-compatible and vectorises, but is evaluated on the CPU and is not
differentiable by JAX; analytic derivatives are supplied by the caller instead.

:math:`K_\nu(x)` overflows for large orders at small arguments and underflows at large
arguments, and the Matérn prefactors :math:`x^\nu / \Gamma(\nu)` do the same. Only
logarithms therefore leave the host, where they are formed in double precision from
the exponentially scaled :func:`scipy.special.kve`.
"""

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array
from jaxtyping import Shaped
from scipy import special


def _log_kv_large_order(nu: float, x: np.ndarray) -> np.ndarray:
    r"""
    Debye's uniform expansion of :math:`\log K_\nu(x)`, to first order in :math:`1/\nu`.

    With :math:`x = \nu z`, :math:`t = (1 + z^2)^{-1/2}` and
    :math:`\eta = \sqrt{1 + z^2} + \log(z / (1 + \sqrt{1 + z^2}))`,

    .. math::

        K_\nu(\nu z) \approx \sqrt{\frac{\pi t}{2 \nu}} e^{-\nu \eta}
        \left(1 - \frac{3 t - 5 t^3}{24 \nu}\right).
    """
    z = x / nu
    root = np.sqrt(1 + z**2)
    eta = root + np.log(z / (1 + root))
    t = 1 / root
    correction = (3 * t - 5 * t**3) / (24 * nu)
    return 0.5 * np.log(np.pi * t / (2 * nu)) - nu * eta + np.log1p(-correction)


def log_kv(
    nu: float,
    x: Shaped[Array, " *shape"],
    power: float = 0.0,
    offset: float = 0.0,
) -> Shaped[Array, " *shape"]:
    r"""
    Evaluate :math:`c + p \log x + \log K_\nu(x)` for positive arguments.

    Where :math:`K_\nu(x)` is not representable in double precision, which only
    happens for large :math:`|\nu|`, Debye's uniform large order expansion is used.

    :param nu: Real order :math:`\nu`; :math:`K_{-\nu} = K_\nu`
    :param x: Strictly positive arguments
    :param power: Power :math:`p` of the argument multiplying the Bessel function
    :param offset: Constant :math:`c` added to the logarithm
    :return: The logarithm with the shape and floating dtype of ``x``
    """
    x = jnp.asarray(x)
    if not jnp.issubdtype(x.dtype, jnp.floating):
        x = x.astype(jnp.result_type(float))
    result_shape = jax.ShapeDtypeStruct(x.shape, x.dtype)
    order = abs(nu)

    def _host_log_kv(values: np.ndarray) -> np.ndarray:
        values = np.asarray(values, dtype=np.float64)
        with np.errstate(divide="ignore", over="ignore"):
            log_bessel = np.log(special.kve(order, values)) - values
            overflowed = ~np.isfinite(log_bessel) & (values > 0)
            if order > 0 and np.any(overflowed):
                log_bessel = np.where(
                    overflowed, _log_kv_large_order(order, values), log_bessel
                )
            result = offset + power * np.log(values) + log_bessel
        return np.asarray(result, dtype=result_shape.dtype)

    return jax.pure_callback(_host_log_kv, result_shape, x, vmap_method="broadcast_all")
