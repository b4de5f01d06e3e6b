"""Load, validate, and hot-reload the wearlog engine policy.

The policy lives in ``policy_config.yaml`` alongside this module.  At startup
it is loaded once and cached.  Call ``reload_policy()`` to re-read from disk
after an edit; no restart required.

Usage::

    from wearlog.engine.config_loader import get_policy

    policy = get_policy()
    policy.tz                                          # ZoneInfo("UTC")
    policy.sessions.default_inactivity_timeout_seconds  # 21600
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

logger = logging.getLogger("wearlog.engine.config")

# Path to the YAML file sitting next to this module
_POLICY_PATH = Path(__file__).parent / "policy_config.yaml"


# ---------------------------------------------------------------------------
# Typed policy sections
# ---------------------------------------------------------------------------


@dataclass
class SessionPolicy:
    """Defaults applied to wearing sessions."""

    default_inactivity_timeout_seconds: int


@dataclass
class AutoManagementPolicy:
    """Switches for the auto-management sweep."""

    idle_close_enabled: bool
    default_auto_start_enabled: bool


@dataclass
class EquipmentPolicy:
    """Defaults applied to newly created equipment."""

    default_lifespan_km: float


@dataclass
class EnginePolicy:
    """Complete, validated engine policy.

    Attributes:
        version:         Policy schema version string.
        timezone:        IANA timezone name for day/hour boundaries.
        sessions:        Session defaults.
        auto_management: Auto-management switches.
        equipment:       Equipment defaults.
    """

    version: str
    timezone: str
    sessions: SessionPolicy
    auto_management: AutoManagementPolicy
    equipment: EquipmentPolicy
    _raw: dict = field(default_factory=dict, repr=False)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def default_policy(timezone: str = "UTC") -> EnginePolicy:
    """Policy with built-in defaults, used when no YAML is available."""
    return EnginePolicy(
        version="1.0",
        timezone=timezone,
        sessions=SessionPolicy(default_inactivity_timeout_seconds=6 * 60 * 60),
        auto_management=AutoManagementPolicy(
            idle_close_enabled=True,
            default_auto_start_enabled=True,
        ),
        equipment=EquipmentPolicy(default_lifespan_km=800.0),
    )


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when policy_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError:     If the file does not exist.
        ConfigValidationError: If the YAML is malformed or not a mapping.
    """
    if not path.exists():
        raise FileNotFoundError(f"Policy config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigValidationError(f"{path} must contain a mapping at the top level")
    return raw


def _validate_and_build(raw: dict) -> EnginePolicy:
    """Validate the raw YAML dict and construct an EnginePolicy.

    All problems are collected and reported together.

    Raises:
        ConfigValidationError: If any field is missing or invalid.
    """
    errors: list[str] = []

    version = str(raw.get("version", "1.0"))

    # ── Timezone ──
    tz_name = raw.get("timezone", "UTC")
    if not isinstance(tz_name, str):
        errors.append(f"timezone must be a string, got {tz_name!r}")
        tz_name = "UTC"
    else:
        try:
            ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"timezone '{tz_name}' is not a known IANA timezone")

    # ── Sessions ──
    sess_raw = raw.get("sessions") or {}
    timeout_raw = sess_raw.get("default_inactivity_timeout_seconds", 6 * 60 * 60)
    try:
        timeout = int(timeout_raw)
    except (TypeError, ValueError):
        errors.append(
            f"sessions.default_inactivity_timeout_seconds must be an integer, got {timeout_raw!r}"
        )
        timeout = 0
    else:
        if timeout <= 0:
            errors.append(
                f"sessions.default_inactivity_timeout_seconds = {timeout} must be positive"
            )

    # ── Auto-management ──
    am_raw = raw.get("auto_management") or {}
    auto_management = AutoManagementPolicy(
        idle_close_enabled=bool(am_raw.get("idle_close_enabled", True)),
        default_auto_start_enabled=bool(am_raw.get("default_auto_start_enabled", True)),
    )

    # ── Equipment ──
    eq_raw = raw.get("equipment") or {}
    lifespan_raw = eq_raw.get("default_lifespan_km", 800)
    try:
        lifespan = float(lifespan_raw)
    except (TypeError, ValueError):
        errors.append(f"equipment.default_lifespan_km must be a number, got {lifespan_raw!r}")
        lifespan = 0.0
    else:
        if lifespan <= 0:
            errors.append(f"equipment.default_lifespan_km = {lifespan} must be positive")

    if errors:
        raise ConfigValidationError(
            f"policy_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return EnginePolicy(
        version=version,
        timezone=tz_name,
        sessions=SessionPolicy(default_inactivity_timeout_seconds=timeout),
        auto_management=auto_management,
        equipment=EquipmentPolicy(default_lifespan_km=lifespan),
        _raw=raw,
    )


def load_policy(path: Path | None = None) -> EnginePolicy:
    """Load and validate the engine policy from disk.

    Args:
        path: Override path to YAML.  Uses the bundled policy_config.yaml by default.
    """
    target = path or _POLICY_PATH
    raw = _load_yaml(target)
    policy = _validate_and_build(raw)
    logger.info("Loaded engine policy v%s from %s", policy.version, target)
    return policy


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_policy: EnginePolicy | None = None
_policy_lock = threading.Lock()


def get_policy() -> EnginePolicy:
    """Return the global EnginePolicy singleton, loading it on first call.  Thread-safe."""
    global _policy
    if _policy is None:
        with _policy_lock:
            if _policy is None:  # double-checked locking
                _policy = load_policy()
    return _policy


def reload_policy(path: Path | None = None) -> EnginePolicy:
    """Reload the policy from disk and replace the global singleton.

    If validation fails, the old policy is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new policy is invalid.
        FileNotFoundError:     If the file is missing.
    """
    global _policy
    new_policy = load_policy(path)  # validate before acquiring lock
    with _policy_lock:
        old_version = _policy.version if _policy else "none"
        _policy = new_policy
    logger.info("Reloaded engine policy: %s → %s", old_version, new_policy.version)
    return new_policy
