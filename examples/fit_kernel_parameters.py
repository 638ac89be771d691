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
Example: recover kernel parameters by gradient descent.

A kernel matrix is generated from a Gaussian kernel with a known scale. Starting from
a different scale, the scale is fitted by minimising the squared error between kernel
matrices, using the analytic parameter gradients of
:meth:`~kernelcomp.kernels.KernelComposition.grad_params` and an :mod:`optax`
optimiser. The same is done for the length scale of a Matérn kernel, which has no
automatic derivative.
"""

import equinox as eqx
import jax.numpy as jnp
import jax.random as jr
import optax

from kernelcomp import GaussianKernel, KernelComposition, MaternKernel


def fit_parameter(
    kernel: KernelComposition,
    name: str,
    x: jnp.ndarray,
    target: jnp.ndarray,
    num_steps: int = 500,
) -> float:
    """
    Fit one positive composition parameter of ``kernel`` to a target kernel matrix.

    The parameter is optimised on the log scale so that it stays positive.

    :param kernel: Kernel whose parameter ``name`` is the initial guess
    :param name: Name of the parameter, one of ``kernel.parameter_names``
    :param x: Design matrix with observations in rows
    :param target: Target kernel matrix of ``x``
    :param num_steps: Number of optimiser steps
    :return: Fitted parameter value
    """
    index = kernel.parameter_names.index(name)
    schedule = optax.exponential_decay(0.1, transition_steps=50, decay_rate=0.5)
    optimiser = optax.adam(schedule)

    def _with_value(log_value):
        return eqx.tree_at(
            lambda k: getattr(k.composition, name), kernel, jnp.exp(log_value)
        )

    @eqx.filter_jit
    def step(log_value, opt_state):
        fitted = _with_value(log_value)
        residual = fitted.compute(x) - target
        gradient = fitted.grad_params(x)[index]
        loss_gradient = jnp.mean(2 * residual * gradient) * jnp.exp(log_value)
        updates, opt_state = optimiser.update(loss_gradient, opt_state)
        return optax.apply_updates(log_value, updates), opt_state

    log_value = jnp.log(jnp.asarray(getattr(kernel.composition, name)))
    opt_state = optimiser.init(log_value)
    for _ in range(num_steps):
        log_value, opt_state = step(log_value, opt_state)
    return float(jnp.exp(log_value))


def main(num_steps: int = 500, seed: int = 0) -> dict[str, tuple[float, float]]:
    """
    Run the parameter fitting example.

    :param num_steps: Number of optimiser steps per fitted parameter
    :param seed: Seed for generating the design matrix
    :return: Dictionary from kernel name to (true value, fitted value)
    """
    x = jr.uniform(jr.key(seed), (30, 2))
    problems = {
        "gaussian": (GaussianKernel(alpha=1.7), GaussianKernel(alpha=1.0), "alpha"),
        "matern": (
            MaternKernel(nu=1.5, theta=0.4),
            MaternKernel(nu=1.5, theta=1.0),
            "theta",
        ),
    }

    results = {}
    for label, (true_kernel, initial_kernel, name) in problems.items():
        target = true_kernel.compute(x)
        fitted = fit_parameter(initial_kernel, name, x, target, num_steps)
        true_value = getattr(true_kernel.composition, name)
        print(f"{label}: true {name} = {true_value:.4f}, fitted {name} = {fitted:.4f}")
        results[label] = (true_value, fitted)
    return results


if __name__ == "__main__":
    main()
