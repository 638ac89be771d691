from setuptools import setup

setup(
    name="kernelcomp",
    version="0.1.0",
    description="Jax kernel functions composed from pairwise statistics.",
    author="GCHQ",
    packages=["kernelcomp", "kernelcomp.kernels"],
    python_requires=">=3.10",
    install_requires=[
        "equinox",
        "jax>=0.4.34",
        "jaxtyping",
        "numpy",
        "scipy",
        "typing_extensions",
    ],
    extras_require={
        "dev": [
            "black",
            "isort",
            "optax",
            "pytest",
        ],
    },
)
