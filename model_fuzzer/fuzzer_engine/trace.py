"""
Trace hooks called around every command
"""
import logging
import threading
from typing import Any, List, Optional, Sequence, Tuple

from ..interfaces import ITraceHooks

logger = logging.getLogger(__name__)

TraceEvent = Tuple[str, str, List[Any]]


class NullTrace(ITraceHooks):
    """Trace hooks that do nothing"""

    def enter_command(self, node: str, descriptor: List[Any]) -> None:
        pass

    def exit_command(self, node: str, descriptor: List[Any]) -> None:
        pass


class LoggingTraceRecorder(ITraceHooks):
    """Keeps the ordered enter/exit events of each case in memory and logs them"""

    def __init__(self):
        self.current_trace: Optional[str] = None
        self.traces = {}
        self._lock = threading.Lock()

    def begin_case(self, trace_id: str, nodes: Sequence[str]) -> None:
        with self._lock:
            self.current_trace = trace_id
            self.traces[trace_id] = []
        logger.debug(f"Trace {trace_id} started for {list(nodes)}")

    def end_case(self, trace_id: str) -> None:
        with self._lock:
            events = len(self.traces.get(trace_id, []))
            if self.current_trace == trace_id:
                self.current_trace = None
        logger.debug(f"Trace {trace_id} finished with {events} events")

    def _record(self, event: str, node: str, descriptor: List[Any]) -> None:
        with self._lock:
            self.traces.setdefault(self.current_trace, []).append((event, node, list(descriptor)))
        logger.debug(f"{event} {node}: {descriptor}")

    def enter_command(self, node: str, descriptor: List[Any]) -> None:
        self._record("enter", node, descriptor)

    def exit_command(self, node: str, descriptor: List[Any]) -> None:
        self._record("exit", node, descriptor)

    def events_for(self, trace_id: str) -> List[TraceEvent]:
        with self._lock:
            return list(self.traces.get(trace_id, []))
