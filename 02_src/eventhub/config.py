"""Project-level configuration and path helpers."""

import os
from pathlib import Path
from typing import Mapping, Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "eventhub.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

# Seconds from order creation until packed / shipped / delivered
DEFAULT_STAGE_DELAYS: tuple[float, float, float] = (10.0, 25.0, 45.0)

# Share of simulated webhook deliveries that succeed
DEFAULT_SUCCESS_RATE = 0.9

STAGE_DELAY_ENV_VARS = (
    "FULFILLMENT_PACKED_DELAY",
    "FULFILLMENT_SHIPPED_DELAY",
    "FULFILLMENT_DELIVERED_DELAY",
)


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def validate_stage_delays(delays: tuple[float, ...]) -> tuple[float, float, float]:
    """Check that there are three non-negative, strictly increasing delays."""
    if len(delays) != 3:
        raise ValueError(f"Expected 3 fulfillment stage delays, got {len(delays)}")

    values = tuple(float(d) for d in delays)
    if values[0] < 0:
        raise ValueError("Fulfillment stage delays must be non-negative")
    if not values[0] < values[1] < values[2]:
        raise ValueError(f"Fulfillment stage delays must increase strictly: {values}")

    return values  # type: ignore[return-value]


def resolve_stage_delays(
    environ: Mapping[str, str] | None = None,
) -> tuple[float, float, float]:
    """
    Resolve fulfillment stage delays from the environment.

    Each of FULFILLMENT_PACKED_DELAY, FULFILLMENT_SHIPPED_DELAY and
    FULFILLMENT_DELIVERED_DELAY overrides the matching default when set.

    Raises:
        ValueError: if a value is not a number or the delays are not
            strictly increasing.
    """
    if environ is None:
        environ = os.environ

    delays = []
    for name, default in zip(STAGE_DELAY_ENV_VARS, DEFAULT_STAGE_DELAYS):
        raw = environ.get(name)
        if not raw:
            delays.append(default)
            continue
        try:
            delays.append(float(raw))
        except ValueError as e:
            raise ValueError(f"{name} must be a number, got {raw!r}") from e

    return validate_stage_delays(tuple(delays))
