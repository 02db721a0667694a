"""
Tests for counterexample shrinking
"""
from unittest.mock import Mock

from model_fuzzer.chaos_engine import CrashFaultModel, HEAL
from model_fuzzer.fuzzer_engine.property_model import PropertyModel, JOIN_CLUSTER, LEAVE_CLUSTER
from model_fuzzer.fuzzer_engine.sequence_transformer import SequenceTransformer, renumber
from model_fuzzer.fuzzer_engine.shrinker import Shrinker
from model_fuzzer.models import Call, CallTarget, Command, FuzzerConfig, RunResult, Scheduler
from model_fuzzer.system_models import LinearizableKVModel


def write(node, key, value):
    return Call(CallTarget.SYSTEM, "write", (node, key, value))


def read(node, key):
    return Call(CallTarget.SYSTEM, "read", (node, key))


def commands_of(*calls):
    return renumber([Command(0, call) for call in calls])


def make_shrinker(run, scheduler=Scheduler.DEFAULT, max_shrinks=200):
    config = FuzzerConfig(system_model="linearizable_kv", scheduler=scheduler, max_shrinks=max_shrinks)
    model = PropertyModel(LinearizableKVModel(), CrashFaultModel(), config)
    return Shrinker(model, SequenceTransformer(model, config), run, max_shrinks=max_shrinks)


def fails_on_write_13(commands):
    """Runs fail whenever 13 is written"""
    bad = any(c.call.function == "write" and c.call.args[2] == 13 for c in commands)
    return RunResult(success=not bad, commands=list(commands))


class TestShrinker:
    """Test chunk removal"""

    def test_shrinks_to_failing_command(self):
        shrinker = make_shrinker(fails_on_write_13)
        commands = commands_of(
            read("node_1", "key_1"),
            write("node_2", "key_1", 1),
            read("node_3", "key_2"),
            write("node_1", "key_2", 13),
            read("node_4", "key_1"),
            write("node_3", "key_3", 2),
        )

        shrunk = shrinker.shrink(commands, case_seed=7)

        assert [c.call for c in shrunk.commands] == [write("node_1", "key_2", 13)]
        assert shrunk.commands[0].var == 1
        assert shrunk.steps >= 1
        assert shrunk.run is not None and shrunk.run.success is False
        assert shrunk.transformed == shrunk.commands

    def test_never_runs_invalid_candidates(self):
        """Test candidates violating a precondition are skipped, not executed"""
        config = FuzzerConfig(system_model="linearizable_kv")
        model = PropertyModel(LinearizableKVModel(), CrashFaultModel(), config)

        def run(commands):
            assert model.is_valid(commands)
            return fails_on_write_13(commands)

        shrinker = make_shrinker(run)
        commands = commands_of(
            Call(CallTarget.CLUSTER, LEAVE_CLUSTER, ("node_4",)),
            Call(CallTarget.CLUSTER, JOIN_CLUSTER, ("node_4", "node_1")),
            write("node_1", "key_1", 13),
        )

        shrunk = shrinker.shrink(commands, case_seed=1)

        assert [c.call for c in shrunk.commands] == [write("node_1", "key_1", 13)]

    def test_keeps_sequence_when_nothing_smaller_fails(self):
        run = Mock(return_value=RunResult(success=True, commands=[]))
        shrinker = make_shrinker(run)
        commands = commands_of(write("node_1", "key_1", 1), read("node_2", "key_1"))
        failing = RunResult(success=False, commands=commands)

        shrunk = shrinker.shrink(commands, case_seed=3, failing_run=failing)

        assert shrunk.commands == commands
        assert shrunk.steps == 0
        assert shrunk.run is failing
        assert run.call_count == shrunk.attempts

    def test_attempts_are_bounded(self):
        run = Mock(return_value=RunResult(success=True, commands=[]))
        shrinker = make_shrinker(run, max_shrinks=3)
        commands = commands_of(*[write("node_1", "key_1", v) for v in range(10)])

        shrunk = shrinker.shrink(commands, case_seed=3)

        assert shrunk.attempts == 3
        assert run.call_count == 3

    def test_no_shrinking(self):
        run = Mock()
        shrinker = make_shrinker(run, max_shrinks=0)
        commands = commands_of(write("node_1", "key_1", 13))

        shrunk = shrinker.shrink(commands, case_seed=3)

        assert shrunk.commands == commands
        run.assert_not_called()

    def test_candidates_are_transformed(self):
        """Test each candidate runs with its resolution block appended"""
        executed = []

        def run(commands):
            executed.append(commands)
            return fails_on_write_13(commands)

        shrinker = make_shrinker(run, scheduler=Scheduler.FINITE_FAULT)
        commands = commands_of(read("node_1", "key_1"), write("node_2", "key_1", 13))

        shrunk = shrinker.shrink(commands, case_seed=5)

        assert all(sequence[-1].call == Call(CallTarget.FAULT, HEAL) for sequence in executed)
        assert [c.call for c in shrunk.transformed] == [write("node_2", "key_1", 13), Call(CallTarget.FAULT, HEAL)]
