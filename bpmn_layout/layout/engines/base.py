"""Base layout engine protocol.

Defines the interface that all layout engines must implement.
"""

from abc import ABC, abstractmethod

from bpmn_layout.models.layout_metadata import LayoutRequest, LayoutResult


class LayoutEngine(ABC):
    """Abstract base class for layout engines.

    Engines turn a ``LayoutRequest`` (node sizes, edges, fixed hints) into
    node positions and edge routes. They never see the diagram itself.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Engine name (e.g., 'elk', 'layered')."""
        ...

    @property
    @abstractmethod
    def supports_fixed_edges(self) -> bool:
        """Whether the engine keeps pinned edges out of its routing."""
        ...

    @abstractmethod
    async def layout(self, request: LayoutRequest) -> LayoutResult:
        """Compute a layout.

        Args:
            request: Nodes, edges and options to lay out

        Returns:
            LayoutResult with positions for every movable node

        Raises:
            EngineFailure: If the engine errors or is unreachable
        """
        ...

    @abstractmethod
    async def is_available(self) -> bool:
        """Check if engine can be used (dependencies installed)."""
        ...
