"""
Valkey client utilities for safe connection management
"""
import logging
import valkey
from typing import Tuple
from contextlib import contextmanager

logger = logging.getLogger(__name__)


def parse_address(address: str) -> Tuple[str, int]:
    """Split ``host:port`` into its parts"""
    host, _, port = address.rpartition(':')
    if not host or not port.isdigit():
        raise ValueError(f"Invalid node address: {address!r}")
    return host, int(port)


@contextmanager
def valkey_client(host: str, port: int, timeout: float, decode_responses: bool = True):
    client = None
    try:
        client = valkey.Valkey(
            host=host,
            port=port,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            decode_responses=decode_responses
        )
        yield client
    finally:
        if client is not None:
            try:
                client.close()
            except Exception as e:
                logger.debug(f"Error closing client for {host}:{port}: {e}")


def is_node_alive(address: str, timeout: float = 2.0) -> bool:
    host, port = parse_address(address)
    try:
        with valkey_client(host, port, timeout) as client:
            client.ping()
            return True
    except valkey.exceptions.ValkeyError as e:
        logger.debug(f"{address} is not alive: {e}")
        return False
