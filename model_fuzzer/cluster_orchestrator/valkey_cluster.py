"""
Cluster backend that attaches to already-running valkey-server instances

Each node keeps its replica under the fuzzer:* keys of its own server. The
fuzzer does not spawn processes; crash is emulated by pausing writes and
treating the node as unreachable until it is restarted.
"""
import json
import logging
import valkey
from typing import Any, Dict, List, Optional, Sequence

from .base import ReplicatedStoreCluster, Replica
from ..models import Response, NODEDOWN, TIMEOUT
from ..fuzzer_engine.error_handler import ErrorHandler, ErrorCategory, RetryConfig, SetupError
from ..utils.valkey_utils import is_node_alive, parse_address

logger = logging.getLogger(__name__)

MEMBERS_KEY = "fuzzer:members"
DATA_KEY = "fuzzer:data"
FAULTED_KEY = "fuzzer:faulted"
PAUSE_MS = 3600 * 1000


class ValkeyCluster(ReplicatedStoreCluster):
    """Replicated store backed by one Valkey server per node"""

    def __init__(self, node_addresses: Dict[str, str], timeout: float = 5.0,
                 error_handler: Optional[ErrorHandler] = None,
                 retry_config: Optional[RetryConfig] = None):
        super().__init__(timeout=timeout)
        self.node_addresses = dict(node_addresses)
        self.error_handler = error_handler or ErrorHandler()
        self.retry_config = retry_config or RetryConfig(max_attempts=5, initial_delay=0.5, max_delay=5.0)
        self.connections: Dict[str, valkey.Valkey] = {}

    def get_client(self, node: str) -> valkey.Valkey:
        """Get or create Valkey client connection for a node"""
        if node not in self.connections:
            host, port = parse_address(self.addresses[node])
            self.connections[node] = valkey.Valkey(
                host=host,
                port=port,
                socket_timeout=self.timeout,
                socket_connect_timeout=self.timeout,
                decode_responses=True
            )
        return self.connections[node]

    def _boot(self, node: str) -> str:
        if node not in self.node_addresses:
            raise SetupError(f"No address configured for {node}")
        address = self.node_addresses[node]
        self.addresses[node] = address

        success, _ = self.error_handler.retry_with_backoff(
            operation=lambda: self._check_alive(node, address),
            config=self.retry_config,
            error_category=ErrorCategory.CLUSTER_SETUP,
            operation_name=f"ping {node} ({address})"
        )
        if not success:
            raise SetupError(f"Node {node} at {address} is not reachable")

        logger.info(f"Attached to {node} at {address}")
        return address

    def _check_alive(self, node: str, address: str) -> None:
        if not is_node_alive(address, timeout=self.timeout):
            raise valkey.exceptions.ConnectionError(f"{node} at {address} did not answer PING")

    def _shutdown(self, node: str) -> None:
        client = self.connections.pop(node, None)
        if client is None:
            return
        try:
            client.delete(MEMBERS_KEY, DATA_KEY, FAULTED_KEY)
        finally:
            client.close()

    def _load_members(self, node: str) -> List[str]:
        return list(self.get_client(node).lrange(MEMBERS_KEY, 0, -1))

    def _store_members(self, node: str, members: Sequence[str]) -> None:
        pipe = self.get_client(node).pipeline()
        pipe.delete(MEMBERS_KEY)
        if members:
            pipe.rpush(MEMBERS_KEY, *members)
        pipe.execute()

    def _load_data(self, node: str) -> Replica:
        raw = self.get_client(node).hgetall(DATA_KEY)
        replica = {}
        for key, encoded in raw.items():
            version, value = json.loads(encoded)
            replica[key] = (version, value)
        return replica

    def _store_value(self, node: str, key: str, version: int, value: Any) -> None:
        self.get_client(node).hset(DATA_KEY, key, json.dumps([version, value]))

    def _flush(self, node: str) -> None:
        self.get_client(node).delete(DATA_KEY)

    def _set_faulted_flag(self, node: str, faulted: bool) -> None:
        if node in self.crashed:
            return
        client = self.get_client(node)
        if faulted:
            client.set(FAULTED_KEY, "1")
        else:
            client.delete(FAULTED_KEY)

    def _pause(self, node: str) -> None:
        self.get_client(node).execute_command('CLIENT', 'PAUSE', PAUSE_MS, 'WRITE')

    def _resume(self, node: str) -> None:
        self.get_client(node).execute_command('CLIENT', 'UNPAUSE')

    def rpc(self, node: str, operation: str, *args, timeout: Optional[float] = None) -> Response:
        try:
            return super().rpc(node, operation, *args, timeout=timeout)
        except valkey.exceptions.TimeoutError as e:
            logger.warning(f"{operation} on {node} timed out: {e}")
            return Response.error(TIMEOUT)
        except valkey.exceptions.ConnectionError as e:
            logger.warning(f"{operation} on {node} failed to connect: {e}")
            return Response.error(NODEDOWN)
