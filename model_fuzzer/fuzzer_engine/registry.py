"""
Registry - maps configuration names to adapter constructors
"""
import logging
from typing import Callable, Dict, List

from .error_handler import ConfigurationError
from ..chaos_engine import CrashFaultModel, PartitionFaultModel
from ..cluster_orchestrator import SimulatedCluster, ValkeyCluster
from ..interfaces import IClusterBackend, IFaultModel, ISystemModel
from ..models import FuzzerConfig
from ..system_models import LinearizableKVModel, ReplicatedKVModel

logger = logging.getLogger(__name__)


def _valkey_backend(config: FuzzerConfig) -> ValkeyCluster:
    if not config.node_addresses:
        raise ConfigurationError("The valkey backend needs node_addresses (node -> host:port)")
    return ValkeyCluster(node_addresses=config.node_addresses, timeout=config.command_timeout)


SYSTEM_MODELS: Dict[str, Callable[[FuzzerConfig], ISystemModel]] = {
    'linearizable_kv': lambda config: LinearizableKVModel(),
    'replicated_kv': lambda config: ReplicatedKVModel(),
}

FAULT_MODELS: Dict[str, Callable[[FuzzerConfig], IFaultModel]] = {
    'crash': lambda config: CrashFaultModel(max_faults=config.max_faults),
    'partition': lambda config: PartitionFaultModel(max_faults=config.max_faults),
}

CLUSTER_BACKENDS: Dict[str, Callable[[FuzzerConfig], IClusterBackend]] = {
    'simulated': lambda config: SimulatedCluster(timeout=config.command_timeout),
    'valkey': _valkey_backend,
}


def _create(kind: str, table: Dict[str, Callable], name: str, config: FuzzerConfig):
    if not name:
        raise ConfigurationError(f"No {kind} specified")
    if name not in table:
        raise ConfigurationError(f"Unknown {kind} '{name}', expected one of: {', '.join(sorted(table))}")
    logger.debug(f"Creating {kind} {name}")
    return table[name](config)


def create_system_model(name: str, config: FuzzerConfig) -> ISystemModel:
    return _create("system model", SYSTEM_MODELS, name, config)


def create_fault_model(name: str, config: FuzzerConfig) -> IFaultModel:
    return _create("fault model", FAULT_MODELS, name, config)


def create_cluster_backend(name: str, config: FuzzerConfig) -> IClusterBackend:
    return _create("cluster backend", CLUSTER_BACKENDS, name, config)


def register_system_model(name: str, factory: Callable[[FuzzerConfig], ISystemModel]) -> None:
    SYSTEM_MODELS[name] = factory


def register_fault_model(name: str, factory: Callable[[FuzzerConfig], IFaultModel]) -> None:
    FAULT_MODELS[name] = factory


def register_cluster_backend(name: str, factory: Callable[[FuzzerConfig], IClusterBackend]) -> None:
    CLUSTER_BACKENDS[name] = factory


def available() -> Dict[str, List[str]]:
    """Registered names per adapter kind"""
    return {
        'system_models': sorted(SYSTEM_MODELS),
        'fault_models': sorted(FAULT_MODELS),
        'cluster_backends': sorted(CLUSTER_BACKENDS),
    }
