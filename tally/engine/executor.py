"""Pipeline executor: runs table nodes in dependency order."""

import logging
import threading
import time
from collections import OrderedDict, defaultdict
from typing import Any, Callable

from tally.engine.registry import NodeRegistry
from tally.errors import PipelineError

logger = logging.getLogger(__name__)


def topological_order(node_ids: list[str], edges: list[dict[str, str]]) -> list[str]:
    """Kahn's algorithm; ties keep the order nodes were declared in."""
    known = set(node_ids)
    for e in edges:
        for end in (e["source"], e["target"]):
            if end not in known:
                raise PipelineError(f"Edge references unknown node: {end}")

    downstream: dict[str, list[str]] = defaultdict(list)
    pending = dict.fromkeys(node_ids, 0)
    for e in edges:
        downstream[e["source"]].append(e["target"])
        pending[e["target"]] += 1

    ready = [n_id for n_id in node_ids if pending[n_id] == 0]
    order: list[str] = []
    while ready:
        n_id = ready.pop(0)
        order.append(n_id)
        for target in downstream[n_id]:
            pending[target] -= 1
            if pending[target] == 0:
                ready.append(target)

    if len(order) != len(node_ids):
        stuck = sorted(n_id for n_id, count in pending.items() if count)
        raise PipelineError(f"Pipeline has a cycle through: {', '.join(stuck)}")
    return order


class SessionCache:
    """Node outputs of recent runs, so a rerun can start mid-pipeline.

    Least recently used sessions are evicted past ``max_sessions``. Safe to
    share between the threads serving concurrent requests.
    """

    def __init__(self, max_sessions: int = 20):
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, dict[str, Any]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_id: str) -> dict[str, Any] | None:
        with self._lock:
            outputs = self._sessions.get(session_id)
            if outputs is not None:
                self._sessions.move_to_end(session_id)
            return outputs

    def put(self, session_id: str, outputs: dict[str, Any]) -> None:
        with self._lock:
            self._sessions[session_id] = outputs
            self._sessions.move_to_end(session_id)
            while len(self._sessions) > self.max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                logger.debug("Evicted pipeline session %s", evicted)

    def __len__(self) -> int:
        return len(self._sessions)


_sessions = SessionCache()


class PipelineExecutor:
    """Runs every node of a pipeline once, feeding each its upstream outputs.

    Execution stops at the first failing node; its entry in the result holds
    ``{"error": message}`` and nothing downstream runs.
    """

    def __init__(self, registry: NodeRegistry, sessions: SessionCache | None = None):
        self.registry = registry
        self.sessions = sessions if sessions is not None else _sessions

    def run(
        self,
        pipeline: dict[str, Any],
        on_node_start: Callable[[str], None] | None = None,
        on_node_done: Callable[[str, dict], None] | None = None,
        on_node_error: Callable[[str, Exception], None] | None = None,
        session_id: str | None = None,
        start_from: str | None = None,
    ) -> dict[str, Any]:
        """Execute the pipeline, return {node_id: output_dict}."""
        nodes = {n["id"]: n for n in pipeline["nodes"]}
        edges = pipeline.get("edges", [])
        order = topological_order(list(nodes), edges)

        upstream: dict[str, list[str]] = defaultdict(list)
        for e in edges:
            upstream[e["target"]].append(e["source"])

        results: dict[str, Any] = {}
        pending = order
        cached = self.sessions.get(session_id) if session_id else None
        if cached is not None and start_from in order:
            skip = order.index(start_from)
            for n_id in order[:skip]:
                if n_id in cached:
                    results[n_id] = cached[n_id]
            pending = order[skip:]
            logger.info("Resuming session %s at node %s", session_id, start_from)

        for n_id in pending:
            node_def = nodes[n_id]
            inputs: dict[str, Any] = {}
            for up_id in upstream[n_id]:
                inputs.update(results.get(up_id, {}))

            if on_node_start:
                on_node_start(n_id)

            started = time.perf_counter()
            try:
                node = self.registry.get(node_def["type"])()
                output = node.execute(inputs, node_def.get("config") or {})
            except Exception as exc:
                logger.warning("Node %s (%s) failed: %s", n_id, node_def["type"], exc)
                results[n_id] = {"error": str(exc)}
                if on_node_error:
                    on_node_error(n_id, exc)
                break

            results[n_id] = output
            logger.info("Node %s (%s) finished in %.1f ms", n_id, node_def["type"],
                        (time.perf_counter() - started) * 1000)
            if on_node_done:
                on_node_done(n_id, output)

        if session_id:
            self.sessions.put(session_id, results)
        return results
