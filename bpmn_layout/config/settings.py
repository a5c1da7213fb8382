"""
Configuration and Feature Flags for the layout server

Settings are read once from environment variables at import time. Feature
flags can be toggled at runtime for tests.

Usage:
    from bpmn_layout.config import settings

    if settings.is_enabled('layout_debug'):
        logger.debug(trace.summary())

Environment Variables:
    BPMN_LAYOUT_ENGINE=elk|layered     - Preferred layout engine (default: elk)
    BPMN_LAYOUT_ENGINE_FALLBACK=true   - Use 'layered' when ELK is unavailable
    BPMN_LAYOUT_ELK_TIMEOUT=30         - Seconds to wait for one ELK request
    BPMN_LAYOUT_NODE_PATH=/usr/bin/node - Node.js executable for ELK
    BPMN_LAYOUT_DEBUG=true/false       - Trace layout pipeline steps
    BPMN_LAYOUT_LOG_LEVEL=INFO         - Server log level
    BPMN_LAYOUT_LOCK_TIMEOUT=10        - Seconds to wait for a busy diagram
                                         (unset: wait indefinitely)
"""

import os
from typing import Dict, Optional


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == 'true'


def _env_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value == '':
        return None
    return float(value)


LAYOUT_ENGINE: str = os.getenv('BPMN_LAYOUT_ENGINE', 'elk')
ELK_TIMEOUT: float = _env_float('BPMN_LAYOUT_ELK_TIMEOUT') or 30.0
NODE_PATH: Optional[str] = os.getenv('BPMN_LAYOUT_NODE_PATH') or None
LOG_LEVEL: str = os.getenv('BPMN_LAYOUT_LOG_LEVEL', 'INFO').upper()
LOCK_TIMEOUT: Optional[float] = _env_float('BPMN_LAYOUT_LOCK_TIMEOUT')


# Feature flags with environment variable overrides
FEATURE_FLAGS: Dict[str, bool] = {
    # Fall back to the pure-Python engine when Node.js/elkjs is missing
    'allow_engine_fallback': _env_flag('BPMN_LAYOUT_ENGINE_FALLBACK', 'true'),

    # Per-step layout tracing
    'layout_debug': _env_flag('BPMN_LAYOUT_DEBUG', 'false'),
}


def _require_flag(flag: str) -> None:
    if flag not in FEATURE_FLAGS:
        raise KeyError(
            f"Unknown feature flag: '{flag}'. Known flags: {', '.join(sorted(FEATURE_FLAGS))}"
        )


def is_enabled(flag: str) -> bool:
    """Current value of a feature flag.

    Raises:
        KeyError: for a flag name not in FEATURE_FLAGS
    """
    _require_flag(flag)
    return FEATURE_FLAGS[flag]


def get_all_flags() -> Dict[str, bool]:
    return dict(FEATURE_FLAGS)


def set_flag(flag: str, enabled: bool) -> None:
    """Override a flag at runtime. Tests use this; deployments set the env vars."""
    _require_flag(flag)
    FEATURE_FLAGS[flag] = bool(enabled)
