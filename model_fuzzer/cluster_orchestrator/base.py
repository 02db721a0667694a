"""
Base classes for Cluster Orchestrator components

ReplicatedStoreCluster implements the replicated key-value semantics the
bundled system models run against: per-node membership views, majority
quorum reads and writes, crash and partition faults, and anti-entropy
repair when a node comes back. Subclasses only provide node storage.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from ..interfaces import IClusterBackend
from ..models import Response, NODEDOWN, NOT_FOUND, TIMEOUT

logger = logging.getLogger(__name__)

# key -> (version, value)
Replica = Dict[str, Tuple[int, Any]]


class ReplicatedStoreCluster(IClusterBackend, ABC):
    """Base implementation for cluster backends with common functionality"""

    def __init__(self, timeout: float = 5.0):
        self.nodes: List[str] = []
        self.addresses: Dict[str, str] = {}
        self.crashed: Set[str] = set()
        self.partitions: Set[frozenset] = set()
        self.faulted: Set[str] = set()  # Process-wide fault flags
        self.running = False
        self.timeout = timeout
        self._clock = 0
        self._operations = {
            'members': self._op_members,
            'myself': self._op_myself,
            'join': self._op_join,
            'leave': self._op_leave,
            'write': self._op_write,
            'read': self._op_read,
            'dump': self._op_dump,
            'flush': self._op_flush,
        }

    # Node storage, provided by subclasses

    @abstractmethod
    def _boot(self, node: str) -> str:
        """Make a node available and return its address"""
        pass

    @abstractmethod
    def _shutdown(self, node: str) -> None:
        pass

    @abstractmethod
    def _load_members(self, node: str) -> List[str]:
        pass

    @abstractmethod
    def _store_members(self, node: str, members: Sequence[str]) -> None:
        pass

    @abstractmethod
    def _load_data(self, node: str) -> Replica:
        pass

    @abstractmethod
    def _store_value(self, node: str, key: str, version: int, value: Any) -> None:
        pass

    @abstractmethod
    def _flush(self, node: str) -> None:
        pass

    def _set_faulted_flag(self, node: str, faulted: bool) -> None:
        """Persist the fault flag on the node itself, when the backend can"""
        pass

    def _pause(self, node: str) -> None:
        pass

    def _resume(self, node: str) -> None:
        pass

    # Lifecycle

    def start_nodes(self, nodes: Sequence[str], joined_nodes: Sequence[str]) -> Dict[str, str]:
        logger.info(f"Starting {len(nodes)} nodes, joined: {list(joined_nodes)}")
        self.nodes = list(nodes)
        self.addresses = {}
        for node in self.nodes:
            self.addresses[node] = self._boot(node)
        self.running = True
        self.recluster(joined_nodes)
        return dict(self.addresses)

    def stop_nodes(self) -> None:
        logger.info(f"Stopping nodes: {self.nodes}")
        self.reset_faults()
        for node in self.nodes:
            self._shutdown(node)
        self.running = False

    def is_running(self) -> bool:
        return self.running

    def reset_faults(self) -> None:
        crashed = sorted(self.crashed)
        if crashed or self.partitions or self.faulted:
            logger.info(f"Reset faults: crashed={crashed} partitions={len(self.partitions)}")
        for node in crashed:
            self._resume(node)
        self.crashed.clear()
        self.partitions.clear()
        self.faulted.clear()
        for node in self.nodes:
            self._set_faulted_flag(node, False)

    def recluster(self, joined_nodes: Sequence[str]) -> None:
        self.reset_faults()
        joined = list(joined_nodes)
        for node in self.nodes:
            self._flush(node)
            self._store_members(node, joined if node in joined else [node])

    def address(self, node: str) -> str:
        return self.addresses[node]

    # Faults

    def crash(self, node: str) -> None:
        logger.info(f"Crashing {node}")
        self._mark_faulted(node)
        self._pause(node)
        self.crashed.add(node)

    def restart(self, node: str) -> None:
        logger.info(f"Restarting {node}")
        self.crashed.discard(node)
        self._resume(node)
        self._repair(node)
        self._clear_faulted(node)

    def partition(self, node_a: str, node_b: str) -> None:
        logger.info(f"Partitioning {node_a} <-> {node_b}")
        self.partitions.add(frozenset((node_a, node_b)))
        self._mark_faulted(node_a)
        self._mark_faulted(node_b)

    def heal_partition(self, node_a: str, node_b: str) -> None:
        logger.info(f"Healing partition {node_a} <-> {node_b}")
        self.partitions.discard(frozenset((node_a, node_b)))
        for node in (node_a, node_b):
            if node not in self.crashed:
                self._repair(node)
            self._clear_faulted(node)

    def _mark_faulted(self, node: str) -> None:
        self.faulted.add(node)
        self._set_faulted_flag(node, True)

    def _clear_faulted(self, node: str) -> None:
        if node in self.crashed or any(node in pair for pair in self.partitions):
            return
        self.faulted.discard(node)
        self._set_faulted_flag(node, False)

    def reachable(self, node_a: str, node_b: str) -> bool:
        if node_a in self.crashed or node_b in self.crashed:
            return False
        return node_a == node_b or frozenset((node_a, node_b)) not in self.partitions

    def _repair(self, node: str) -> None:
        """Anti-entropy: pull newer values and membership from reachable peers"""
        local = self._load_data(node)
        peers = [p for p in self.nodes if p != node and self.reachable(node, p)]
        for peer in peers:
            for key, (version, value) in self._load_data(peer).items():
                if key not in local or local[key][0] < version:
                    self._store_value(node, key, version, value)
                    local[key] = (version, value)
        for peer in peers:
            members = self._load_members(peer)
            if node in members:
                self._store_members(node, members)
                break

    # RPC surface

    def rpc(self, node: str, operation: str, *args, timeout: Optional[float] = None) -> Response:
        if node not in self.addresses or node in self.crashed:
            return Response.error(NODEDOWN)
        handler = self._operations.get(operation)
        if handler is None:
            raise ValueError(f"Unsupported operation: {operation}")
        return handler(node, *args)

    def _quorum(self, node: str) -> Optional[List[str]]:
        """Reachable members of the node's view, or None without a majority"""
        members = self._load_members(node)
        reachable = [m for m in members if self.reachable(node, m)]
        if len(reachable) * 2 <= len(members):
            return None
        return reachable

    def _op_members(self, node: str) -> Response:
        return Response.ok(list(self._load_members(node)))

    def _op_myself(self, node: str) -> Response:
        return Response.ok(node)

    def _op_join(self, node: str, joining: str) -> Response:
        if joining not in self.addresses or not self.reachable(node, joining):
            return Response.error(TIMEOUT)
        members = self._load_members(node)
        if joining in members:
            return Response.ok(members)
        new_members = members + [joining]
        for member in new_members:
            if member not in self.crashed:
                self._store_members(member, new_members)
        self._repair(joining)
        return Response.ok(new_members)

    def _op_leave(self, node: str, leaving: str) -> Response:
        members = self._load_members(node)
        new_members = [m for m in members if m != leaving]
        for member in new_members:
            if member not in self.crashed:
                self._store_members(member, new_members)
        if leaving not in self.crashed:
            self._store_members(leaving, [leaving])
        return Response.ok(new_members)

    def _op_write(self, node: str, key: str, value: Any) -> Response:
        replicas = self._quorum(node)
        if replicas is None:
            return Response.error(TIMEOUT)
        self._clock += 1
        for replica in replicas:
            self._store_value(replica, key, self._clock, value)
        return Response.ok()

    def _op_read(self, node: str, key: str) -> Response:
        replicas = self._quorum(node)
        if replicas is None:
            return Response.error(TIMEOUT)
        versions = [self._load_data(r).get(key) for r in replicas]
        versions = [v for v in versions if v is not None]
        if not versions:
            return Response.error(NOT_FOUND)
        return Response.ok(max(versions, key=lambda v: v[0])[1])

    def _op_dump(self, node: str) -> Response:
        """Local replica contents, without quorum"""
        return Response.ok({key: value for key, (_, value) in self._load_data(node).items()})

    def _op_flush(self, node: str) -> Response:
        self._flush(node)
        return Response.ok()
