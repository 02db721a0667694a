"""
Crash fault model - stops nodes, tolerating up to ``max_faults`` crashes
"""
import logging
import random
from dataclasses import dataclass, replace
from typing import Any, FrozenSet, List, Sequence

from .base import BaseFaultModel, HEAL, CRASH_RESOLVE
from ..models import Call, CallTarget

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CrashFaultState:
    crashed: FrozenSet[str] = frozenset()
    resolved: FrozenSet[str] = frozenset()  # Crashed permanently by resolution


class CrashFaultModel(BaseFaultModel):
    """Fault model whose only fault is a node crash"""

    name = "crash"

    def commands(self, joined_nodes: Sequence[str], rng: random.Random) -> List[Call]:
        if not joined_nodes:
            return []
        return [Call(CallTarget.FAULT, "crash", (rng.choice(list(joined_nodes)),))]

    def functions(self, joined_nodes: Sequence[str]) -> List[str]:
        return ["crash"]

    def initial_state(self) -> CrashFaultState:
        return CrashFaultState()

    def precondition(self, fault_state: CrashFaultState, call: Call) -> bool:
        if call.function == "crash":
            return call.node not in fault_state.crashed and len(fault_state.crashed) < self.max_faults
        return call.function in self.global_functions()

    def next_state(self, fault_state: CrashFaultState, response: Any, call: Call) -> CrashFaultState:
        if call.function == "crash":
            return replace(fault_state, crashed=fault_state.crashed | {call.node})
        if call.function == HEAL:
            return CrashFaultState(crashed=fault_state.resolved, resolved=fault_state.resolved)
        if call.function == CRASH_RESOLVE:
            return replace(fault_state, resolved=fault_state.crashed)
        return fault_state

    def is_crashed(self, fault_state: CrashFaultState, node: str) -> bool:
        return node in fault_state.crashed

    def num_resolvable_faults(self, fault_state: CrashFaultState) -> int:
        return len(fault_state.crashed - fault_state.resolved)

    def inject(self, context, call: Call) -> None:
        context.cluster.crash(call.node)
        context.active_faults.append(("crash", call.node))

    def heal_all(self, context) -> None:
        for kind, node in context.active_faults:
            context.cluster.restart(node)
        context.active_faults.clear()

    def crash_resolve(self, context) -> None:
        # Crashed nodes stay down for the rest of the case
        logger.info(f"Leaving {[node for _, node in context.active_faults]} crashed")
        context.active_faults.clear()
