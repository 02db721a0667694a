"""
Partition fault model - drops traffic between pairs of nodes

Healing removes every partition. Crash-resolution crashes the first node
of each partitioned pair, which removes the partition by leaving one side
down for the rest of the case.
"""
import logging
import random
from dataclasses import dataclass
from typing import Any, FrozenSet, List, Sequence, Tuple

from .base import BaseFaultModel, HEAL, CRASH_RESOLVE
from ..models import Call, CallTarget

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PartitionFaultState:
    partitions: FrozenSet[Tuple[str, str]] = frozenset()
    crashed: FrozenSet[str] = frozenset()


class PartitionFaultModel(BaseFaultModel):

    name = "partition"

    def commands(self, joined_nodes: Sequence[str], rng: random.Random) -> List[Call]:
        if len(joined_nodes) < 2:
            return []
        node_a, node_b = rng.sample(list(joined_nodes), 2)
        return [
            Call(CallTarget.FAULT, "begin_partition", (node_a, node_b)),
            Call(CallTarget.FAULT, "end_partition", (node_a, node_b)),
        ]

    def functions(self, joined_nodes: Sequence[str]) -> List[str]:
        return ["begin_partition", "end_partition"]

    def initial_state(self) -> PartitionFaultState:
        return PartitionFaultState()

    def precondition(self, fault_state: PartitionFaultState, call: Call) -> bool:
        if call.function == "begin_partition":
            node_a, node_b = call.args
            return (
                node_a != node_b
                and (node_a, node_b) not in fault_state.partitions
                and (node_b, node_a) not in fault_state.partitions
                and node_a not in fault_state.crashed
                and node_b not in fault_state.crashed
                and len(fault_state.partitions) < self.max_faults
            )
        if call.function == "end_partition":
            return tuple(call.args) in fault_state.partitions
        return call.function in self.global_functions()

    def next_state(self, fault_state: PartitionFaultState, response: Any, call: Call) -> PartitionFaultState:
        if call.function == "begin_partition":
            return PartitionFaultState(fault_state.partitions | {tuple(call.args)}, fault_state.crashed)
        if call.function == "end_partition":
            return PartitionFaultState(fault_state.partitions - {tuple(call.args)}, fault_state.crashed)
        if call.function == HEAL:
            return PartitionFaultState(frozenset(), fault_state.crashed)
        if call.function == CRASH_RESOLVE:
            crashed = fault_state.crashed | {node_a for node_a, _ in fault_state.partitions}
            return PartitionFaultState(frozenset(), crashed)
        return fault_state

    def is_crashed(self, fault_state: PartitionFaultState, node: str) -> bool:
        return node in fault_state.crashed

    def num_resolvable_faults(self, fault_state: PartitionFaultState) -> int:
        return len(fault_state.partitions)

    def inject(self, context, call: Call) -> None:
        node_a, node_b = call.args
        if call.function == "begin_partition":
            context.cluster.partition(node_a, node_b)
            context.active_faults.append(("partition", node_a, node_b))
        elif call.function == "end_partition":
            context.cluster.heal_partition(node_a, node_b)
            context.active_faults.remove(("partition", node_a, node_b))
        else:
            raise ValueError(f"Unsupported fault: {call.function}")

    def heal_all(self, context) -> None:
        for _, node_a, node_b in context.active_faults:
            context.cluster.heal_partition(node_a, node_b)
        context.active_faults.clear()

    def crash_resolve(self, context) -> None:
        for _, node_a, node_b in context.active_faults:
            context.cluster.crash(node_a)
            context.cluster.heal_partition(node_a, node_b)
        context.active_faults.clear()
