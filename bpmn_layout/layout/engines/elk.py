"""ELK layout engine backed by elkjs.

One long-lived Node.js process runs ``elk_worker.js`` and answers
line-delimited JSON requests tagged with an id. Out-of-scope nodes travel
with ``noLayout`` at their current position; pinned edges never reach ELK
and come back in the result exactly as they were sent.
"""

import asyncio
import atexit
import glob
import json
import logging
import os
import shutil
import subprocess
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from bpmn_layout.config import settings
from bpmn_layout.core.errors import EngineFailure
from bpmn_layout.layout.engines.base import LayoutEngine
from bpmn_layout.models.layout_metadata import (
    EdgeRoute,
    EdgeSection,
    LayoutRequest,
    LayoutResult,
    NodePosition,
)

logger = logging.getLogger(__name__)

WORKER_SCRIPT = Path(__file__).resolve().parent.parent / "elk_worker.js"

BPMN_LAYOUT_OPTIONS = {
    "elk.algorithm": "layered",
    "elk.direction": "RIGHT",
    "elk.edgeRouting": "ORTHOGONAL",
    "elk.layered.nodePlacement.strategy": "NETWORK_SIMPLEX",
    "elk.layered.nodePlacement.favorStraightEdges": True,
    "elk.layered.cycleBreaking.strategy": "DEPTH_FIRST",
    "elk.layered.crossingMinimization.strategy": "LAYER_SWEEP",
    # keeps fixed context nodes in their current relative order
    "elk.layered.crossingMinimization.semiInteractive": True,
    "elk.layered.highDegreeNodes.treatment": True,
    "elk.layered.highDegreeNodes.threshold": 5,
    "elk.layered.compaction.postCompaction.strategy": "EDGE_LENGTH",
    "elk.spacing.nodeNode": 50,
    "elk.layered.spacing.nodeNodeBetweenLayers": 60,
    "elk.spacing.edgeNode": 15,
    "elk.layered.spacing.edgeEdgeBetweenLayers": 15,
    "elk.layered.spacing.edgeNodeBetweenLayers": 15,
    "elk.separateConnectedComponents": True,
    "elk.spacing.componentComponent": 50,
}

_ELKJS_PROBE = "try { require.resolve('elkjs'); process.stdout.write('ok'); } catch (e) { process.stdout.write('missing'); }"


def locate_node(preferred: Optional[str] = None) -> Optional[str]:
    """Return a runnable Node.js executable, or None.

    Order: explicit path, ``$PATH``, common install prefixes, newest nvm.
    """
    candidates = [preferred] if preferred else []
    on_path = shutil.which("node")
    if on_path:
        candidates.append(on_path)
    candidates += ["/usr/local/bin/node", "/usr/bin/node"]
    candidates += sorted(glob.glob(os.path.expanduser("~/.nvm/versions/node/*/bin/node")), reverse=True)

    for candidate in candidates:
        try:
            probe = subprocess.run([candidate, "--version"], capture_output=True, text=True, timeout=5)
        except (OSError, subprocess.SubprocessError):
            continue
        if probe.returncode == 0:
            logger.debug(f"Using Node.js {probe.stdout.strip()} at {candidate}")
            return candidate
    return None


class ElkWorker:
    """A persistent ``node elk_worker.js`` process.

    Round trips are serialized by a thread lock and executed off the event
    loop. A dead or timed-out process is discarded and respawned on the
    next call.
    """

    def __init__(self, node: str, script: Path = WORKER_SCRIPT, timeout: float = 30):
        self.node = node
        self.script = script
        self.timeout = timeout
        self._proc: Optional[subprocess.Popen] = None
        self._io_lock = threading.Lock()

    @property
    def alive(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    def _spawn(self) -> subprocess.Popen:
        proc = subprocess.Popen(
            [self.node, str(self.script)],
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            bufsize=1,
            cwd=self.script.parent,
        )
        logger.info(f"ELK worker started (pid {proc.pid})")
        return proc

    def _roundtrip(self, message: str) -> Dict[str, Any]:
        with self._io_lock:
            if not self.alive:
                self._proc = self._spawn()
            proc = self._proc
            try:
                proc.stdin.write(message)
                proc.stdin.flush()
                line = proc.stdout.readline()
            except (BrokenPipeError, OSError) as e:
                self._discard()
                raise RuntimeError(f"ELK worker pipe failed: {e}") from e
            if not line:
                stderr = self._discard()
                raise RuntimeError(f"ELK worker exited: {stderr or 'no output'}")
            return json.loads(line)

    def _discard(self) -> str:
        """Stop the process and return whatever it wrote to stderr."""
        proc, self._proc = self._proc, None
        if proc is None:
            return ""
        if proc.poll() is None:
            proc.kill()
        try:
            _, stderr = proc.communicate(timeout=5)
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            logger.warning(f"Could not collect ELK worker output: {e}")
            return ""
        return (stderr or "").strip()

    async def call(self, graph: Dict[str, Any]) -> Dict[str, Any]:
        """Lay out one ELK graph and return the laid-out graph.

        Raises:
            RuntimeError: worker crash, timeout, elkjs error or id mismatch
        """
        request_id = uuid.uuid4().hex
        message = json.dumps({"id": request_id, "graph": graph}) + "\n"
        loop = asyncio.get_running_loop()
        try:
            reply = await asyncio.wait_for(
                loop.run_in_executor(None, self._roundtrip, message), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.error(f"ELK request {request_id} exceeded {self.timeout}s; killing worker")
            self._discard()
            raise RuntimeError(f"ELK layout timed out after {self.timeout}s")

        if reply.get("id") != request_id:
            self._discard()
            raise RuntimeError(f"ELK worker answered {reply.get('id')!r}, expected {request_id!r}")
        if "error" in reply:
            raise RuntimeError(f"elkjs: {reply['error']}")
        return reply.get("result", {})

    def stop(self) -> None:
        with self._io_lock:
            if self._proc is not None:
                logger.debug("Stopping ELK worker")
                self._discard()


_shared_worker: Optional[ElkWorker] = None
_shared_lock = threading.Lock()


@atexit.register
def _stop_shared_worker() -> None:
    if _shared_worker is not None:
        _shared_worker.stop()


class ELKLayoutEngine(LayoutEngine):
    """Layered ELK layout with orthogonal routing.

    All instances share one worker process.
    """

    def __init__(
        self,
        node_path: Optional[str] = None,
        worker_script: Optional[Path] = None,
        timeout: Optional[float] = None,
    ):
        self._node_path = node_path or settings.NODE_PATH
        self._worker_script = worker_script or WORKER_SCRIPT
        self._timeout = timeout if timeout is not None else settings.ELK_TIMEOUT

    @property
    def name(self) -> str:
        return "elk"

    @property
    def supports_fixed_edges(self) -> bool:
        return True

    def _worker(self) -> ElkWorker:
        global _shared_worker
        with _shared_lock:
            if _shared_worker is None:
                node = locate_node(self._node_path)
                if node is None:
                    raise EngineFailure(self.name, "Node.js not found")
                _shared_worker = ElkWorker(node, self._worker_script, self._timeout)
            return _shared_worker

    async def is_available(self) -> bool:
        """True when Node.js runs and resolves elkjs from the worker directory."""
        node = locate_node(self._node_path)
        if node is None:
            return False
        try:
            probe = subprocess.run(
                [node, "-e", _ELKJS_PROBE],
                capture_output=True,
                text=True,
                timeout=5,
                cwd=self._worker_script.parent,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"elkjs probe failed: {e}")
            return False
        return probe.stdout.strip() == "ok"

    async def layout(self, request: LayoutRequest) -> LayoutResult:
        """Compute layout using ELK.

        Raises:
            EngineFailure: If the worker cannot start, errors or times out
        """
        options = {
            **BPMN_LAYOUT_OPTIONS,
            "elk.direction": request.direction,
            "elk.spacing.nodeNode": request.node_spacing,
            "elk.layered.spacing.nodeNodeBetweenLayers": request.layer_spacing,
            **request.options,
        }
        elk_graph = self._request_to_elk(request, options)

        worker = self._worker()
        try:
            elk_result = await worker.call(elk_graph)
        except (RuntimeError, OSError, ValueError) as e:
            raise EngineFailure(self.name, str(e)) from e

        return self._elk_to_result(elk_result, request, options)

    def _request_to_elk(self, request: LayoutRequest, options: Dict[str, Any]) -> Dict[str, Any]:
        """Convert a layout request to ELK JSON.

        Pinned edges are left out so ELK never routes them.
        """
        uses_partitions = any(n.partition is not None for n in request.nodes)
        if uses_partitions:
            options = {**options, "elk.partitioning.activate": True}

        children: List[Dict[str, Any]] = []
        for node in request.nodes:
            child: Dict[str, Any] = {"id": node.id, "width": node.width, "height": node.height}
            node_options: Dict[str, Any] = {}
            if node.fixed:
                child["x"] = node.x or 0
                child["y"] = node.y or 0
                node_options["org.eclipse.elk.noLayout"] = True
            if node.partition is not None:
                node_options["elk.partitioning.partition"] = node.partition
            if node_options:
                child["layoutOptions"] = node_options
            children.append(child)

        edges = [
            {"id": edge.id, "sources": [edge.source], "targets": [edge.target]}
            for edge in request.edges
            if not edge.fixed
        ]
        return {"id": "root", "layoutOptions": options, "children": children, "edges": edges}

    def _elk_to_result(
        self, elk_result: Dict[str, Any], request: LayoutRequest, options: Dict[str, Any]
    ) -> LayoutResult:
        """Convert ELK result to a LayoutResult."""
        movable = {n.id for n in request.movable_nodes}
        positions: Dict[str, NodePosition] = {}
        for node in elk_result.get("children", []):
            if node["id"] in movable:
                positions[node["id"]] = NodePosition(x=node.get("x", 0), y=node.get("y", 0))

        missing = movable - set(positions)
        if missing:
            raise EngineFailure(self.name, f"no position returned for {sorted(missing)}")

        edges: Dict[str, EdgeRoute] = {}
        for edge in elk_result.get("edges", []):
            sections = [
                EdgeSection(
                    id=section.get("id"),
                    startPoint=(section["startPoint"]["x"], section["startPoint"]["y"]),
                    endPoint=(section["endPoint"]["x"], section["endPoint"]["y"]),
                    bendPoints=[(bp["x"], bp["y"]) for bp in section.get("bendPoints", [])],
                )
                for section in edge.get("sections", [])
            ]
            if sections:
                edges[edge["id"]] = EdgeRoute(sections=sections)

        for edge in request.edges:
            if edge.fixed and edge.waypoints:
                edges[edge.id] = EdgeRoute.from_points(list(edge.waypoints), fixed=True)

        return LayoutResult(
            algorithm="elk",
            layout_options=options,
            positions=positions,
            edges=edges,
        )

    def shutdown(self) -> None:
        """Stop the shared worker; the next layout call respawns it."""
        global _shared_worker
        with _shared_lock:
            if _shared_worker is not None:
                _shared_worker.stop()
                _shared_worker = None
