"""
Chaos Engine - Fault models injected into command sequences

- CrashFaultModel: crashes nodes up to a fault tolerance
- PartitionFaultModel: partitions pairs of nodes
"""
from .base import BaseFaultModel, HEAL, CRASH_RESOLVE
from .crash_fault_model import CrashFaultModel, CrashFaultState
from .partition_fault_model import PartitionFaultModel, PartitionFaultState

__all__ = [
    'BaseFaultModel',
    'HEAL',
    'CRASH_RESOLVE',
    'CrashFaultModel',
    'CrashFaultState',
    'PartitionFaultModel',
    'PartitionFaultState',
]
