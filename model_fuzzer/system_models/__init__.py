"""
System Models - Adapters for the systems under test
"""
from .base import BaseSystemModel
from .kv_store import LinearizableKVModel
from .replicated_kv import ReplicatedKVModel

__all__ = [
    'BaseSystemModel',
    'LinearizableKVModel',
    'ReplicatedKVModel',
]
