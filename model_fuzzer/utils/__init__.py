"""
Utilities - Bounded waits and Valkey connection helpers
"""
from .wait_utils import wait_until, wait_until_nodes

__all__ = [
    'wait_until',
    'wait_until_nodes',
]
