"""
Runtime defaults for CLI/library processing.

Values can be overridden via environment variables to avoid hardcoded tuning
in multiple entrypoints.
"""

from __future__ import annotations

from dataclasses import dataclass
import os


ENV_MAX_ITERATIONS = "LSCM_UNWRAP_MAX_ITERATIONS"
ENV_TOLERANCE = "LSCM_UNWRAP_TOLERANCE"
ENV_BOUNDARY_AS_SEAM = "LSCM_UNWRAP_BOUNDARY_AS_SEAM"
ENV_LAYOUT_RESOLUTION = "LSCM_UNWRAP_LAYOUT_RESOLUTION"

MIN_ITERATIONS = 100
MAX_ITERATIONS = 50000

_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class RuntimeDefaults:
    max_iterations: int
    tolerance: float
    include_boundary_as_seam: bool
    layout_resolution: int


def _read_int_env(
    env_name: str,
    default: int,
    *,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    raw = os.environ.get(env_name)
    if raw is None:
        return default
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return default

    if min_value is not None and value < min_value:
        return default
    if max_value is not None and value > max_value:
        return default
    return value


def _read_float_env(
    env_name: str,
    default: float,
    *,
    min_exclusive: float | None = None,
    max_exclusive: float | None = None,
) -> float:
    raw = os.environ.get(env_name)
    if raw is None:
        return default
    try:
        value = float(str(raw).strip())
    except (TypeError, ValueError):
        return default

    if value != value:  # NaN
        return default
    if min_exclusive is not None and value <= min_exclusive:
        return default
    if max_exclusive is not None and value >= max_exclusive:
        return default
    return value


def _read_bool_env(env_name: str, default: bool) -> bool:
    raw = os.environ.get(env_name)
    if raw is None:
        return default
    value = str(raw).strip().lower()
    if value in _TRUE_WORDS:
        return True
    if value in _FALSE_WORDS:
        return False
    return default


def load_runtime_defaults() -> RuntimeDefaults:
    return RuntimeDefaults(
        max_iterations=_read_int_env(
            ENV_MAX_ITERATIONS, 3000, min_value=MIN_ITERATIONS, max_value=MAX_ITERATIONS
        ),
        tolerance=_read_float_env(ENV_TOLERANCE, 1e-10, min_exclusive=0.0, max_exclusive=1.0),
        include_boundary_as_seam=_read_bool_env(ENV_BOUNDARY_AS_SEAM, True),
        layout_resolution=_read_int_env(ENV_LAYOUT_RESOLUTION, 1024, min_value=64, max_value=16384),
    )


DEFAULTS = load_runtime_defaults()
