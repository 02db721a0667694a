"""
Property Model - Composite model state and the precondition/postcondition evaluator

The engine owns membership bookkeeping and the counter. The opaque
sub-states belong to the system model and the fault model and are only
passed through to them.
"""
import logging
import random
from typing import Any, List, Sequence

from .error_handler import AdapterMismatchError
from ..interfaces import ISystemModel, IFaultModel
from ..models import Call, CallTarget, Command, FuzzerConfig, ModelState, Response, SymbolicVar

logger = logging.getLogger(__name__)

JOIN_CLUSTER = "join_cluster"
LEAVE_CLUSTER = "leave_cluster"
FORCED_FAILURE = "forced_failure"


def node_names(count: int) -> tuple:
    return tuple(f"node_{i}" for i in range(1, count + 1))


class PropertyModel:
    """Decides command legality, verdicts and model transitions"""

    def __init__(self, system_model: ISystemModel, fault_model: IFaultModel, config: FuzzerConfig):
        self.system_model = system_model
        self.fault_model = fault_model
        self.config = config

    def initial_state(self) -> ModelState:
        nodes = node_names(self.system_model.num_nodes())
        joined = nodes if self.config.cluster_nodes else nodes[:1]
        return ModelState(
            counter=0,
            nodes=nodes,
            joined_nodes=joined,
            fault_model_state=self.fault_model.initial_state(),
            node_state=self.system_model.initial_state()
        )

    # Classification

    def is_node_command(self, call: Call, joined_nodes: Sequence[str] = ()) -> bool:
        if call.target == CallTarget.SYSTEM:
            return call.function in self.system_model.functions()
        if call.target == CallTarget.FAULT:
            return call.function in self.fault_model.functions(joined_nodes)
        return False

    def is_global(self, call: Call) -> bool:
        if call.target == CallTarget.SYSTEM:
            return call.function in self.system_model.global_functions()
        if call.target == CallTarget.FAULT:
            return call.function in self.fault_model.global_functions()
        return False

    def is_assertion(self, call: Call) -> bool:
        return call.target == CallTarget.SYSTEM and call.function in self.system_model.assertion_functions()

    # Membership commands

    def membership_commands(self, state: ModelState, rng: random.Random) -> List[Call]:
        return [
            Call(CallTarget.CLUSTER, JOIN_CLUSTER, (rng.choice(state.nodes), rng.choice(state.nodes))),
            Call(CallTarget.CLUSTER, LEAVE_CLUSTER, (rng.choice(state.nodes),)),
        ]

    def removable_nodes(self, state: ModelState) -> tuple:
        """Joined nodes that may leave; the first members stay as coordination points"""
        if len(state.joined_nodes) <= self.config.min_members_for_leave:
            return ()
        return state.joined_nodes[self.config.min_members_for_leave:]

    def _is_crashed(self, state: ModelState, node: Any) -> bool:
        return self.fault_model.is_crashed(state.fault_model_state, node)

    @property
    def min_joined_nodes(self) -> int:
        if self.system_model.min_joined_nodes is not None:
            return self.system_model.min_joined_nodes
        return self.config.min_joined_nodes

    def _cluster_condition(self, state: ModelState, node: Any) -> bool:
        return len(state.joined_nodes) >= self.min_joined_nodes and node in state.joined_nodes

    # Evaluator

    def precondition(self, state: ModelState, call: Call) -> bool:
        result = self._precondition(state, call)
        if self.config.precondition_debug:
            logger.info(f"precondition {call} at counter {state.counter} joined {list(state.joined_nodes)}: {result}")
        return result

    def _precondition(self, state: ModelState, call: Call) -> bool:
        if call.target == CallTarget.CLUSTER:
            if call.function == JOIN_CLUSTER:
                node, join_node = call.args
                return (
                    node in state.nodes
                    and node not in state.joined_nodes
                    and join_node in state.joined_nodes
                    and not self._is_crashed(state, node)
                    and not self._is_crashed(state, join_node)
                )
            if call.function == LEAVE_CLUSTER:
                return call.node in self.removable_nodes(state) and not self._is_crashed(state, call.node)
            return False

        if self.is_node_command(call, state.joined_nodes):
            if call.target == CallTarget.SYSTEM:
                return (
                    self._cluster_condition(state, call.node)
                    and self.system_model.precondition(state.node_state, call)
                    and not self._is_crashed(state, call.node)
                )
            return (
                self._cluster_condition(state, call.node)
                and self.fault_model.precondition(state.fault_model_state, call)
            )

        if call.target == CallTarget.ENGINE:
            return call.function == FORCED_FAILURE

        return self.is_global(call)

    def postcondition(self, state: ModelState, call: Call, response: Response) -> bool:
        """Verdict for a response, judged against the state before the call"""
        result = self._postcondition(state, call, response)
        if self.config.postcondition_debug:
            logger.info(f"postcondition {call} -> {response}: {result}")
        return result

    def _postcondition(self, state: ModelState, call: Call, response: Response) -> bool:
        if call.target == CallTarget.ENGINE and call.function == FORCED_FAILURE:
            return False

        if call.target == CallTarget.CLUSTER and call.function in (JOIN_CLUSTER, LEAVE_CLUSTER):
            if not response.is_ok:
                return False
            expected = self.next_state(state, response, call).joined_nodes
            return sorted(response.value or []) == sorted(expected)

        if call.target == CallTarget.SYSTEM and call.function in self.system_model.functions():
            return self.system_model.postcondition(state.node_state, call, response)

        if call.target == CallTarget.FAULT and call.function in self.fault_model.functions(state.joined_nodes):
            return self.fault_model.postcondition(state.fault_model_state, call, response)

        if call.target == CallTarget.FAULT and call.function in self.fault_model.global_functions():
            return True

        if call.target == CallTarget.SYSTEM and call.function in self.system_model.global_functions():
            return self.system_model.postcondition(state.node_state, call, response)

        raise AdapterMismatchError(call)

    def next_state(self, state: ModelState, response: Any, call: Call) -> ModelState:
        """New model state; the counter always advances by one"""
        counter = state.counter + 1

        if call.target == CallTarget.CLUSTER:
            if call.function == JOIN_CLUSTER:
                return state.evolve(counter=counter, joined_nodes=state.joined_nodes + (call.node,))
            if call.function == LEAVE_CLUSTER:
                joined = tuple(n for n in state.joined_nodes if n != call.node)
                return state.evolve(counter=counter, joined_nodes=joined)

        if call.target == CallTarget.SYSTEM and (self.is_node_command(call) or self.is_global(call)):
            node_state = self.system_model.next_state(state, state.node_state, response, call)
            return state.evolve(counter=counter, node_state=node_state)

        if call.target == CallTarget.FAULT and (self.is_node_command(call, state.joined_nodes) or self.is_global(call)):
            fault_state = self.fault_model.next_state(state.fault_model_state, response, call)
            return state.evolve(counter=counter, fault_model_state=fault_state)

        return state.evolve(counter=counter)

    def is_valid(self, commands: Sequence[Command]) -> bool:
        """Whether every command's precondition holds when replayed symbolically"""
        state = self.initial_state()
        for command in commands:
            if not self.precondition(state, command.call):
                return False
            state = self.next_state(state, SymbolicVar(command.var), command.call)
        return True
