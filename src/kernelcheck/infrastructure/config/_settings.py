"""
Harness settings loaded from the environment.

Settings are read from `KERNELCHECK_*` variables. An optional `.env` file is
parsed with python-dotenv; variables already present in the process
environment take precedence over the file.

Recognized keys
---------------
- KERNELCHECK_TRIALS (int >= 1, default 4)
- KERNELCHECK_REFERENCE_ITERATION_CAP (int >= 1, default 32)
- KERNELCHECK_REPORT_GRANULARITY (int >= 1, default 16)
- KERNELCHECK_SEED (int, default 0)
- KERNELCHECK_LOG_PROGRESS (bool, default true)
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Mapping, Optional, Union

from dotenv import dotenv_values

_PREFIX = "KERNELCHECK_"
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class HarnessSettings:
    """
    Tunables of the benchmark harness.

    Attributes
    ----------
    trials : int
        Timing brackets per measured size, before `trials_extension`.
    reference_iteration_cap : int
        Upper bound on iterations per bracket for the reference backend.
    report_granularity : int
        Number of sizes per report section.
    seed : int
        Seed of the execution context's random stream.
    log_progress : bool
        Print one line per measured size after each section.
    """

    trials: int = 4
    reference_iteration_cap: int = 32
    report_granularity: int = 16
    seed: int = 0
    log_progress: bool = True


def _parse_int(key: str, raw: str, minimum: Optional[int]) -> int:
    try:
        value = int(raw.strip())
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None
    if minimum is not None and value < minimum:
        raise ValueError(f"{key} must be >= {minimum}, got {value}")
    return value


def _parse_bool(key: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{key} must be a boolean, got {raw!r}")


def settings_from_mapping(values: Mapping[str, Optional[str]]) -> HarnessSettings:
    """
    Build settings from a mapping of `KERNELCHECK_*` keys to raw strings.

    Missing (or None) keys keep their defaults.

    Raises
    ------
    ValueError
        If a value cannot be parsed; the message names the key.
    """
    defaults = HarnessSettings()
    fields = {}
    for name, minimum in (
        ("trials", 1),
        ("reference_iteration_cap", 1),
        ("report_granularity", 1),
        ("seed", None),
    ):
        key = _PREFIX + name.upper()
        raw = values.get(key)
        fields[name] = (
            getattr(defaults, name) if raw is None else _parse_int(key, raw, minimum)
        )
    key = _PREFIX + "LOG_PROGRESS"
    raw = values.get(key)
    fields["log_progress"] = (
        defaults.log_progress if raw is None else _parse_bool(key, raw)
    )
    return HarnessSettings(**fields)


def load_settings(
    env_file: Optional[Union[str, os.PathLike]] = None,
) -> HarnessSettings:
    """
    Load settings from an optional `.env` file overlaid by `os.environ`.

    Parameters
    ----------
    env_file : Optional[str | os.PathLike]
        Path to a dotenv file. A missing file is treated as empty.
    """
    values = {}
    if env_file is not None and os.path.exists(env_file):
        values.update(dotenv_values(env_file))
    for key, value in os.environ.items():
        if key.startswith(_PREFIX):
            values[key] = value
    return settings_from_mapping(values)
