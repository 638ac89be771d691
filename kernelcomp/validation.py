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
Functionality to validate data passed throughout kernelcomp.

The functions within this module are intended to be used as a means to validate inputs
passed to classes, functions and methods throughout the kernelcomp codebase. Parameter
checks raise :class:`~kernelcomp.util.ParameterDomainError` and shape checks raise
:class:`~kernelcomp.util.DimensionMismatchError`, both of which are
:class:`ValueError`.
"""

# Support annotations with | in Python < 3.10
from __future__ import annotations

import numbers
from typing import TypeVar

from kernelcomp.util import DimensionMismatchError, ParameterDomainError

T = TypeVar("T")


def validate_in_range(
    x: T,
    object_name: str,
    strict_inequalities: bool,
    lower_bound: T | None = None,
    upper_bound: T | None = None,
) -> None:
    """
    Verify that a given parameter is in a specified range.

    :param x: Variable we wish to verify lies in the specified range
    :param object_name: Name of ``x`` to display if limits are broken
    :param strict_inequalities: If :data:`True`, checks are applied using strict
        inequalities, otherwise they are not
    :param lower_bound: Lower limit placed on ``x``, or :data:`None`
    :param upper_bound: Upper limit placed on ``x``, or :data:`None`
    :raises ParameterDomainError: Raised if ``x`` does not fall between
        ``lower_limit`` and ``upper_limit``
    :raises TypeError: Raised if x cannot be compared to a value using ``>``, ``>=``,
        ``<`` or ``<=``
    """
    try:
        if strict_inequalities:
            if lower_bound is not None and not x > lower_bound:
                raise ParameterDomainError(
                    f"{object_name} must be strictly above {lower_bound}"
                )
            if upper_bound is not None and not x < upper_bound:
                raise ParameterDomainError(
                    f"{object_name} must be strictly below {upper_bound}"
                )
        else:
            if lower_bound is not None and not x >= lower_bound:
                raise ParameterDomainError(
                    f"{object_name} must be {lower_bound} or above"
                )
            if upper_bound is not None and not x <= upper_bound:
                raise ParameterDomainError(
                    f"{object_name} must be {upper_bound} or lower"
                )
    except TypeError as exc:
        if strict_inequalities:
            raise TypeError(
                f"{object_name} must have a valid comparison < and > implemented"
            ) from exc
        raise TypeError(
            f"{object_name} must have a valid comparison <= and >= implemented"
        ) from exc


def validate_positive_integer(x: object, object_name: str) -> int:
    """
    Verify that a given parameter is a positive integer.

    Floats holding an integral value, such as ``2.0``, are accepted and converted.

    :param x: Variable to check
    :param object_name: Name of ``x`` to display if it is not a positive integer
    :return: ``x`` as an :class:`int`
    :raises ParameterDomainError: Raised if ``x`` is not a positive integer
    """
    if isinstance(x, bool) or not isinstance(x, numbers.Real):
        raise ParameterDomainError(f"{object_name} must be a positive integer")
    if not float(x).is_integer():
        raise ParameterDomainError(f"{object_name} must be a positive integer")
    if x < 1:
        raise ParameterDomainError(f"{object_name} must be a positive integer")
    return int(x)


def validate_is_instance(
    x: object,
    object_name: str,
    expected_type: type | tuple[type, ...],
) -> None:
    """
    Verify that a given object is of a given type.

    :param x: Object we wish to validate
    :param object_name: Name of ``x`` to display if it is not of type ``expected_type``
    :param expected_type: Expected type of ``x``, can be a tuple to specify a
        choice of valid types
    :raises TypeError: Raised if ``x`` is not of type ``expected_type``
    """
    try:
        is_valid_type = isinstance(x, expected_type)
    except TypeError as exc:
        raise TypeError(
            "expected_type must be a type, tuple of types or a union"
        ) from exc

    if not is_valid_type:
        raise TypeError(f"{object_name} must be of type {expected_type}")


def validate_dimensions(**operands) -> int:
    """
    Validate that all operands share the same trailing (coordinate) dimension.

    :param operands: Arrays keyed by the name to display in the error message;
        :data:`None` values are skipped
    :return: The shared trailing dimension
    :raises DimensionMismatchError: Raised if any two trailing dimensions differ
    """
    sizes = {
        name: (value.shape[-1] if value.ndim else 1)
        for name, value in operands.items()
        if value is not None
    }
    if len(set(sizes.values())) > 1:
        described = ", ".join(f"'{name}' has {size}" for name, size in sizes.items())
        raise DimensionMismatchError(f"Dimensions do not conform: {described}")
    return next(iter(sizes.values()))


def validate_trans(trans: str, object_name: str = "trans") -> None:
    """
    Validate a design matrix layout flag.

    :param trans: Layout flag, must be ``"N"`` or ``"T"``
    :param object_name: Name of the flag to display in the error message
    :raises ValueError: Raised if ``trans`` is neither ``"N"`` nor ``"T"``
    """
    if trans not in {"N", "T"}:
        raise ValueError(f"'{object_name}' must be 'N' or 'T', got {trans!r}")
