"""
In-process cluster backend used for simulation and tests
"""
from typing import Any, Dict, List, Sequence

from .base import ReplicatedStoreCluster, Replica


class SimulatedCluster(ReplicatedStoreCluster):
    """Nodes are plain dictionaries living in the fuzzer process"""

    def __init__(self, timeout: float = 5.0):
        super().__init__(timeout=timeout)
        self._members: Dict[str, List[str]] = {}
        self._data: Dict[str, Replica] = {}
        self.boot_count = 0

    def _boot(self, node: str) -> str:
        self.boot_count += 1
        self._members[node] = [node]
        self._data[node] = {}
        return f"{node}@simulated"

    def _shutdown(self, node: str) -> None:
        self._members.pop(node, None)
        self._data.pop(node, None)

    def _load_members(self, node: str) -> List[str]:
        return list(self._members[node])

    def _store_members(self, node: str, members: Sequence[str]) -> None:
        self._members[node] = list(members)

    def _load_data(self, node: str) -> Replica:
        return dict(self._data[node])

    def _store_value(self, node: str, key: str, version: int, value: Any) -> None:
        self._data[node][key] = (version, value)

    def _flush(self, node: str) -> None:
        self._data[node] = {}
