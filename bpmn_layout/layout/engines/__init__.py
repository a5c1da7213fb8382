"""Layout engines registry.

Available engines:
- elk: ELK via elkjs (layered, orthogonal routing)
- layered: NetworkX layered layout (pure Python fallback)
"""

import logging
from typing import Optional

from bpmn_layout.config import settings
from bpmn_layout.core.errors import EngineFailure
from bpmn_layout.layout.engines.base import LayoutEngine
from bpmn_layout.layout.engines.elk import BPMN_LAYOUT_OPTIONS, ELKLayoutEngine
from bpmn_layout.layout.engines.layered import LayeredLayoutEngine

logger = logging.getLogger(__name__)

# Engine registry
ENGINES = {
    "elk": ELKLayoutEngine,
    "layered": LayeredLayoutEngine,
}


def get_engine(name: str) -> type:
    """Get layout engine class by name.

    Args:
        name: Engine name ('elk', 'layered')

    Returns:
        Layout engine class

    Raises:
        ValueError: If engine not found
    """
    if name not in ENGINES:
        raise ValueError(f"Unknown layout engine: {name}. Available: {list(ENGINES.keys())}")
    return ENGINES[name]


async def resolve_engine(name: Optional[str] = None) -> LayoutEngine:
    """Instantiate the configured engine, falling back to 'layered' when allowed.

    Raises:
        EngineFailure: If the engine is unavailable and fallback is disabled
    """
    name = name or settings.LAYOUT_ENGINE
    engine = get_engine(name)()
    if await engine.is_available():
        return engine
    if name != "layered" and settings.is_enabled("allow_engine_fallback"):
        logger.warning(f"Layout engine '{name}' unavailable, falling back to 'layered'")
        return LayeredLayoutEngine()
    raise EngineFailure(name, "engine is not available")


__all__ = [
    "LayoutEngine",
    "ELKLayoutEngine",
    "LayeredLayoutEngine",
    "BPMN_LAYOUT_OPTIONS",
    "ENGINES",
    "get_engine",
    "resolve_engine",
]
