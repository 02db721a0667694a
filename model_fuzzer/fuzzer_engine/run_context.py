"""
Run context - everything a single test case needs, built once per case
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..interfaces import IClusterBackend, ITraceHooks
from ..models import FuzzerConfig, Response


class UnknownNodeError(KeyError):
    """Node name is not part of the current run"""


@dataclass
class RunContext:
    """
    Explicit per-case state passed to adapters and the executor.

    ``active_faults`` lists the faults injected on the live cluster during
    this case so fault models can resolve them. A new context is built for
    every case, so nothing leaks between cases.
    """
    config: FuzzerConfig
    nodes: Tuple[str, ...]
    addresses: Dict[str, str]
    cluster: IClusterBackend
    trace: ITraceHooks
    runner: str = "runner"
    trace_id: Optional[str] = None
    active_faults: List[Tuple[Any, ...]] = field(default_factory=list)

    def resolve(self, node: str) -> str:
        """Address of a node in this run"""
        if node not in self.addresses:
            raise UnknownNodeError(node)
        return self.addresses[node]

    def rpc(self, node: str, operation: str, *args) -> Response:
        return self.cluster.rpc(node, operation, *args, timeout=self.config.command_timeout)
