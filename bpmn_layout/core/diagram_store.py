"""Diagram Store - registry of diagram sessions keyed by diagram id.

Each session owns all mutable state of one diagram:
- the element graph
- the waypoint pin registry
- the command log (undo/redo, rollback)
- an asyncio lock serializing operations on that diagram

Operations on one diagram never interleave: ``acquire`` holds the session
lock for the whole operation, including the awaited engine call. Different
diagrams proceed independently.

Usage:
    store = DiagramStore()
    store.register(graph)

    async with store.acquire("order-process") as session:
        await orchestrator.layout(session, options)
"""

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Optional

from bpmn_layout.config import settings
from bpmn_layout.core.errors import DiagramBusyError, DiagramNotFoundError, ValidationError
from bpmn_layout.layout.pins import PinRegistry
from bpmn_layout.managers.command_log import CommandLog
from bpmn_layout.models.diagram import DiagramGraph

logger = logging.getLogger(__name__)


@dataclass
class DiagramSession:
    """Owned per-diagram state. Never shared between diagrams."""

    graph: DiagramGraph
    pins: PinRegistry = field(default_factory=PinRegistry)
    commands: CommandLog = field(default_factory=CommandLog)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def id(self) -> str:
        return self.graph.id

    def info(self) -> Dict[str, object]:
        return {
            "diagram_id": self.id,
            "name": self.graph.name,
            "element_count": len(self.graph.elements),
            "pinned_connections": len(self.pins),
            "can_undo": self.commands.can_undo,
            "can_redo": self.commands.can_redo,
            "etag": self.graph.compute_etag(),
            "created_at": self.created_at.isoformat(),
        }


class DiagramStore:
    """Thread-safe registry of diagram sessions."""

    def __init__(self, lock_timeout: Optional[float] = None):
        """Initialize store.

        Args:
            lock_timeout: Seconds to wait for a busy diagram before raising
                DiagramBusyError (None = wait indefinitely; defaults to settings)
        """
        self._sessions: Dict[str, DiagramSession] = {}
        self._lock = threading.RLock()
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.LOCK_TIMEOUT

    def __contains__(self, diagram_id: str) -> bool:
        with self._lock:
            return diagram_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def register(self, graph: DiagramGraph, replace: bool = False) -> DiagramSession:
        """Register a diagram and create its session.

        Raises:
            ValidationError: If the id is taken and replace is False
        """
        with self._lock:
            if graph.id in self._sessions and not replace:
                raise ValidationError(
                    f"Diagram {graph.id} already exists",
                    details={"diagram_id": graph.id},
                )
            session = DiagramSession(graph=graph)
            self._sessions[graph.id] = session
            logger.info(f"Registered diagram {graph.id} ({len(graph.elements)} elements)")
            return session

    def get(self, diagram_id: str) -> DiagramSession:
        """Get a session by diagram id.

        Raises:
            DiagramNotFoundError: If not registered
        """
        with self._lock:
            session = self._sessions.get(diagram_id)
        if session is None:
            raise DiagramNotFoundError(diagram_id)
        return session

    def delete(self, diagram_id: str) -> None:
        with self._lock:
            if diagram_id not in self._sessions:
                raise DiagramNotFoundError(diagram_id)
            del self._sessions[diagram_id]
            logger.info(f"Deleted diagram {diagram_id}")

    def list_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    @asynccontextmanager
    async def acquire(self, diagram_id: str) -> AsyncIterator[DiagramSession]:
        """Hold a diagram's lock for the duration of one operation.

        Raises:
            DiagramNotFoundError: If not registered
            DiagramBusyError: If the lock is not acquired within lock_timeout
        """
        session = self.get(diagram_id)
        if self.lock_timeout is None:
            await session.lock.acquire()
        else:
            try:
                await asyncio.wait_for(session.lock.acquire(), timeout=self.lock_timeout)
            except asyncio.TimeoutError:
                raise DiagramBusyError(diagram_id, self.lock_timeout)
        try:
            yield session
        finally:
            session.lock.release()
