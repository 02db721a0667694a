"""
Tests for the model state and the precondition/postcondition evaluator
"""
import logging
import pytest

from model_fuzzer.chaos_engine import CrashFaultModel, CrashFaultState, HEAL
from model_fuzzer.fuzzer_engine.error_handler import AdapterMismatchError
from model_fuzzer.fuzzer_engine.property_model import (
    PropertyModel, JOIN_CLUSTER, LEAVE_CLUSTER, FORCED_FAILURE, node_names
)
from model_fuzzer.models import Call, CallTarget, Command, FuzzerConfig, Response, SymbolicVar, TIMEOUT
from model_fuzzer.system_models import LinearizableKVModel


def join(node, join_node):
    return Call(CallTarget.CLUSTER, JOIN_CLUSTER, (node, join_node))


def leave(node):
    return Call(CallTarget.CLUSTER, LEAVE_CLUSTER, (node,))


def write(node, key, value):
    return Call(CallTarget.SYSTEM, "write", (node, key, value))


def read(node, key):
    return Call(CallTarget.SYSTEM, "read", (node, key))


@pytest.fixture
def config():
    return FuzzerConfig(system_model="linearizable_kv")


@pytest.fixture
def model(config):
    return PropertyModel(LinearizableKVModel(), CrashFaultModel(), config)


@pytest.fixture
def state(model):
    return model.initial_state()


def test_node_names():
    assert node_names(3) == ("node_1", "node_2", "node_3")


class TestInitialState:
    """Test the initial model state"""

    def test_all_nodes_joined(self, state):
        """Test every node starts joined by default"""
        assert state.counter == 0
        assert state.nodes == ("node_1", "node_2", "node_3", "node_4")
        assert state.joined_nodes == state.nodes
        assert state.fault_model_state == CrashFaultState()
        assert state.node_state == {}

    def test_only_first_node_joined(self):
        """Test only the first node is joined when nodes start unclustered"""
        config = FuzzerConfig(system_model="linearizable_kv", cluster_nodes=False)
        model = PropertyModel(LinearizableKVModel(), CrashFaultModel(), config)
        assert model.initial_state().joined_nodes == ("node_1",)


class TestPrecondition:
    """Test command legality"""

    def test_leave_with_three_joined_is_illegal(self, model, state):
        """Test leave is never legal with three or fewer joined members"""
        three = state.evolve(joined_nodes=("node_1", "node_2", "node_3"))
        for node in state.nodes:
            assert model.precondition(three, leave(node)) is False

    def test_leave_keeps_first_members(self, model, state):
        """Test only members after the first three may leave"""
        assert model.precondition(state, leave("node_4")) is True
        assert model.precondition(state, leave("node_1")) is False

    def test_leave_of_non_member_is_illegal(self, model, state):
        five = state.evolve(
            nodes=state.nodes + ("node_5",),
            joined_nodes=("node_1", "node_2", "node_3", "node_4")
        )
        assert model.precondition(five, leave("node_5")) is False

    def test_join(self, model, state):
        """Test a node may join through a joined member"""
        partial = state.evolve(joined_nodes=("node_1", "node_2", "node_3"))
        assert model.precondition(partial, join("node_4", "node_1")) is True
        assert model.precondition(partial, join("node_4", "node_4")) is False
        assert model.precondition(partial, join("node_1", "node_2")) is False

    def test_join_through_crashed_member_is_illegal(self, model, state):
        partial = state.evolve(
            joined_nodes=("node_1", "node_2", "node_3"),
            fault_model_state=CrashFaultState(crashed=frozenset({"node_1"}))
        )
        assert model.precondition(partial, join("node_4", "node_1")) is False
        assert model.precondition(partial, join("node_4", "node_2")) is True

    def test_system_command_requires_joined_node(self, model, state):
        partial = state.evolve(joined_nodes=("node_1", "node_2", "node_3"))
        assert model.precondition(partial, write("node_1", "key_1", 1)) is True
        assert model.precondition(partial, write("node_4", "key_1", 1)) is False

    def test_system_command_requires_enough_joined_nodes(self, model, state):
        """Test system commands need at least the minimum joined members"""
        small = state.evolve(joined_nodes=("node_1", "node_2"))
        assert model.precondition(small, read("node_1", "key_1")) is False

    def test_system_model_sets_minimum_joined(self, config, state):
        """Test a system model's own threshold overrides the configured one"""
        system_model = LinearizableKVModel()
        system_model.min_joined_nodes = 2
        model = PropertyModel(system_model, CrashFaultModel(), config)
        small = state.evolve(joined_nodes=("node_1", "node_2"))

        assert model.min_joined_nodes == 2
        assert model.precondition(small, read("node_1", "key_1")) is True
        assert model.precondition(small.evolve(joined_nodes=("node_1",)), read("node_1", "key_1")) is False

    def test_system_command_on_crashed_node_is_illegal(self, model, state):
        crashed = state.evolve(fault_model_state=CrashFaultState(crashed=frozenset({"node_2"})))
        assert model.precondition(crashed, read("node_2", "key_1")) is False
        assert model.precondition(crashed, read("node_1", "key_1")) is True

    def test_fault_command(self, model, state):
        """Test fault commands respect the fault tolerance"""
        crash = Call(CallTarget.FAULT, "crash", ("node_1",))
        assert model.precondition(state, crash) is True

        crashed = state.evolve(fault_model_state=CrashFaultState(crashed=frozenset({"node_2"})))
        assert model.precondition(crashed, crash) is False

    def test_global_and_engine_commands(self, model, state):
        assert model.precondition(state, Call(CallTarget.FAULT, HEAL)) is True
        assert model.precondition(state, Call(CallTarget.ENGINE, FORCED_FAILURE)) is True

    def test_unknown_command_is_illegal(self, model, state):
        assert model.precondition(state, Call(CallTarget.SYSTEM, "bogus", ("node_1",))) is False
        assert model.precondition(state, Call(CallTarget.CLUSTER, "rebalance")) is False

    def test_debug_logging(self, state, caplog):
        """Test preconditions are logged when debugging is enabled"""
        config = FuzzerConfig(system_model="linearizable_kv", precondition_debug=True)
        model = PropertyModel(LinearizableKVModel(), CrashFaultModel(), config)

        with caplog.at_level(logging.INFO):
            model.precondition(state, read("node_1", "key_1"))

        assert "precondition" in caplog.text


class TestPostcondition:
    """Test verdicts, judged against the pre-command state"""

    def test_forced_failure_always_fails(self, model, state):
        assert model.postcondition(state, Call(CallTarget.ENGINE, FORCED_FAILURE), Response.ok()) is False

    def test_join_requires_expected_members(self, model, state):
        partial = state.evolve(joined_nodes=("node_1", "node_2", "node_3"))
        call = join("node_4", "node_1")

        members = ["node_1", "node_2", "node_3", "node_4"]
        assert model.postcondition(partial, call, Response.ok(members)) is True
        assert model.postcondition(partial, call, Response.ok(members[:3])) is False
        assert model.postcondition(partial, call, Response.error(TIMEOUT)) is False

    def test_leave_requires_expected_members(self, model, state):
        call = leave("node_4")
        assert model.postcondition(state, call, Response.ok(["node_1", "node_2", "node_3"])) is True

    def test_system_command_delegates(self, model, state):
        """Test system commands are judged by the system model"""
        written = state.evolve(node_state={"key_1": 7})
        assert model.postcondition(written, read("node_1", "key_1"), Response.ok(7)) is True
        assert model.postcondition(written, read("node_1", "key_1"), Response.ok(8)) is False
        assert model.postcondition(state, write("node_1", "key_1", 1), Response.error(TIMEOUT)) is True

    def test_fault_commands(self, model, state):
        assert model.postcondition(state, Call(CallTarget.FAULT, "crash", ("node_1",)), Response.ok()) is True
        assert model.postcondition(state, Call(CallTarget.FAULT, HEAL), Response.error("anything")) is True

    def test_unrecognized_command_fails_closed(self, model, state):
        """Test a command no adapter knows raises instead of passing"""
        with pytest.raises(AdapterMismatchError) as exc_info:
            model.postcondition(state, Call(CallTarget.SYSTEM, "bogus", ("node_1",)), Response.ok())
        assert exc_info.value.call.function == "bogus"


class TestNextState:
    """Test model transitions"""

    def test_counter_always_increments(self, model, state):
        for call in [
            read("node_1", "key_1"),
            Call(CallTarget.ENGINE, FORCED_FAILURE),
            Call(CallTarget.FAULT, HEAL),
            Call(CallTarget.SYSTEM, "bogus"),
        ]:
            assert model.next_state(state, Response.ok(), call).counter == state.counter + 1

    def test_membership(self, model, state):
        """Test joins append and leaves remove"""
        left = model.next_state(state, Response.ok(), leave("node_4"))
        assert left.joined_nodes == ("node_1", "node_2", "node_3")

        rejoined = model.next_state(left, Response.ok(), join("node_4", "node_2"))
        assert rejoined.joined_nodes == ("node_1", "node_2", "node_3", "node_4")

    def test_system_state_updated_on_ok(self, model, state):
        written = model.next_state(state, Response.ok(), write("node_1", "key_1", 3))
        assert written.node_state == {"key_1": 3}

        timed_out = model.next_state(state, Response.error(TIMEOUT), write("node_1", "key_1", 3))
        assert timed_out.node_state == {}

    def test_fault_state_updated(self, model, state):
        crashed = model.next_state(state, Response.ok(), Call(CallTarget.FAULT, "crash", ("node_3",)))
        assert crashed.fault_model_state.crashed == frozenset({"node_3"})

    def test_forced_failure_leaves_state_untouched(self, model, state):
        after = model.next_state(state, Response.ok(), Call(CallTarget.ENGINE, FORCED_FAILURE))
        assert after == state.evolve(counter=1)

    def test_state_is_not_mutated(self, model, state):
        model.next_state(state, Response.ok(), leave("node_4"))
        assert state.joined_nodes == ("node_1", "node_2", "node_3", "node_4")
        assert state.counter == 0


class TestIsValid:
    """Test symbolic replay of preconditions"""

    def test_valid_sequence(self, model):
        commands = [
            Command(1, Call(CallTarget.FAULT, "crash", ("node_2",))),
            Command(2, read("node_1", "key_1")),
            Command(3, Call(CallTarget.FAULT, HEAL)),
        ]
        assert model.is_valid(commands) is True

    def test_invalid_sequence(self, model):
        """Test a read on a crashed node makes the sequence invalid"""
        commands = [
            Command(1, Call(CallTarget.FAULT, "crash", ("node_2",))),
            Command(2, read("node_2", "key_1")),
        ]
        assert model.is_valid(commands) is False

    def test_symbolic_results_do_not_update_system_state(self, model):
        state = model.next_state(model.initial_state(), SymbolicVar(1), write("node_1", "key_1", 3))
        assert state.node_state == {}
        assert state.counter == 1
