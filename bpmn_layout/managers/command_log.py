"""
CommandLog - reversible commands for layout, pin and lane operations.

Every mutating operation on a diagram session runs as a command:

    with session.commands.record(session, "layout", params):
        ...mutate session.graph / session.pins...

- Before the body runs, the session state (graph + pins) is snapshotted.
- If the body raises, the snapshot is restored and the error propagates, so
  a failed engine call leaves the diagram exactly as it was.
- If the body succeeds and changed something, the command is pushed on the
  undo stack with before/after snapshots and the redo stack is cleared.

Undo restores the "before" snapshot, redo the "after" snapshot.
"""

import copy
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from bpmn_layout.models.diagram import DiagramGraph, Point

logger = logging.getLogger(__name__)


# ============================================================================
# Enums and data classes
# ============================================================================

class CommandStatus(Enum):
    """Command lifecycle states."""
    ACTIVE = "active"
    APPLIED = "applied"
    UNDONE = "undone"
    ROLLED_BACK = "rolled_back"
    DISCARDED = "discarded"


@dataclass
class SessionSnapshot:
    """Full copy of the mutable state of one diagram session."""
    graph: DiagramGraph
    pins: Dict[str, List[Point]]
    etag: str


@dataclass
class CommandRecord:
    """One reversible operation."""
    id: str
    operation: str
    params: Dict[str, Any]
    before: SessionSnapshot
    after: Optional[SessionSnapshot] = None
    status: CommandStatus = CommandStatus.ACTIVE
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: Optional[str] = None

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "operation": self.operation,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
        }


# ============================================================================
# Command log
# ============================================================================

class CommandLog:
    """Undo/redo history of one diagram session."""

    def __init__(self, max_history: int = 50):
        self.max_history = max_history
        self._undo: List[CommandRecord] = []
        self._redo: List[CommandRecord] = []

    @staticmethod
    def snapshot(session: Any) -> SessionSnapshot:
        graph = session.graph.model_copy(deep=True)
        return SessionSnapshot(
            graph=graph,
            pins=session.pins.snapshot(),
            etag=graph.compute_etag(),
        )

    @staticmethod
    def restore(session: Any, snapshot: SessionSnapshot) -> None:
        session.graph = snapshot.graph.model_copy(deep=True)
        session.pins.load(snapshot.pins)

    @contextmanager
    def record(self, session: Any, operation: str, params: Optional[Dict[str, Any]] = None) -> Iterator[CommandRecord]:
        """Run the block as one reversible command."""
        command = CommandRecord(
            id=str(uuid.uuid4()),
            operation=operation,
            params=copy.deepcopy(params or {}),
            before=self.snapshot(session),
        )
        try:
            yield command
        except BaseException as e:
            self.restore(session, command.before)
            command.status = CommandStatus.ROLLED_BACK
            command.error = str(e)
            logger.info(f"Command {operation} rolled back: {e}")
            raise

        after = self.snapshot(session)
        if after.etag == command.before.etag and after.pins == command.before.pins:
            command.status = CommandStatus.DISCARDED
            logger.debug(f"Command {operation} changed nothing; not recorded")
            return

        command.after = after
        command.status = CommandStatus.APPLIED
        self._undo.append(command)
        if len(self._undo) > self.max_history:
            self._undo.pop(0)
        self._redo.clear()
        logger.debug(f"Command {operation} recorded ({command.id})")

    def undo(self, session: Any) -> Optional[CommandRecord]:
        """Revert the most recent command. Returns None if nothing to undo."""
        if not self._undo:
            return None
        command = self._undo.pop()
        self.restore(session, command.before)
        command.status = CommandStatus.UNDONE
        self._redo.append(command)
        logger.info(f"Undid {command.operation} ({command.id})")
        return command

    def redo(self, session: Any) -> Optional[CommandRecord]:
        """Re-apply the most recently undone command."""
        if not self._redo:
            return None
        command = self._redo.pop()
        self.restore(session, command.after)
        command.status = CommandStatus.APPLIED
        self._undo.append(command)
        logger.info(f"Redid {command.operation} ({command.id})")
        return command

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def history(self) -> List[Dict[str, Any]]:
        return [c.summary() for c in self._undo]
