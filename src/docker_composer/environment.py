"""Environment-variable gates evaluated at configuration time."""

from __future__ import annotations

import os
from typing import Callable, Mapping, Optional

EnvironmentCheck = Callable[[Optional[str]], bool]


def evaluate_environment(
    variable: str,
    check: EnvironmentCheck | None = None,
    environ: Mapping[str, str] | None = None,
) -> bool:
    """Decide a gate from a single environment variable.

    Args:
        variable: Name of the environment variable to read.
        check: Optional predicate over the value; receives ``None`` when the
            variable is unset.  Without one, the gate is open whenever the
            variable is set, including to an empty string.
        environ: Mapping to read from.  Defaults to ``os.environ``.

    Returns:
        The gate decision.
    """
    if environ is None:
        environ = os.environ
    value = environ.get(variable)
    if check is None:
        return value is not None
    return bool(check(value))
