"""
Cluster Orchestrator - Cluster backends the command sequences run against
"""
from .base import ReplicatedStoreCluster
from .in_memory import SimulatedCluster
from .valkey_cluster import ValkeyCluster

__all__ = [
    'ReplicatedStoreCluster',
    'SimulatedCluster',
    'ValkeyCluster',
]
