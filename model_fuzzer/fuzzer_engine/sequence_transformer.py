"""
Sequence Transformer - Rewrites generated sequences for targeted fault testing

finite_fault: node commands, one fault resolution command, the settling
global commands, then the global assertions.

single_success: the first unit of work, every global command, then a
forced failure.

Both keep the relative order of retained commands and renumber the
variable slots from 1.
"""
import logging
import random
from typing import List, Sequence

from .property_model import PropertyModel, FORCED_FAILURE
from ..chaos_engine.base import HEAL, CRASH_RESOLVE
from ..models import Call, CallTarget, Command, FuzzerConfig, Scheduler

logger = logging.getLogger(__name__)


def renumber(commands: Sequence[Command]) -> List[Command]:
    return [Command(var, command.call) for var, command in enumerate(commands, start=1)]


class SequenceTransformer:

    def __init__(self, model: PropertyModel, config: FuzzerConfig):
        self.model = model
        self.config = config

    def transform(self, commands: Sequence[Command], rng: random.Random, scheduler: Scheduler = None) -> List[Command]:
        scheduler = scheduler or self.config.scheduler
        if scheduler == Scheduler.FINITE_FAULT:
            return self.finite_fault(commands, rng)
        if scheduler == Scheduler.SINGLE_SUCCESS:
            return self.single_success(commands)
        return list(commands)

    def _global_calls(self, names: Sequence[str]) -> List[Call]:
        return [Call(CallTarget.SYSTEM, name) for name in names]

    def settle_calls(self) -> List[Call]:
        """Global system calls that are not assertions, in declaration order"""
        assertions = self.model.system_model.assertion_functions()
        return self._global_calls(
            [name for name in self.model.system_model.global_functions() if name not in assertions]
        )

    def assertion_calls(self) -> List[Call]:
        """Global assertion calls, in declaration order"""
        global_functions = self.model.system_model.global_functions()
        return self._global_calls(
            [name for name in self.model.system_model.assertion_functions() if name in global_functions]
        )

    def resolution_call(self, rng: random.Random) -> Call:
        if self.config.fault_injection and rng.random() < 0.5:
            return Call(CallTarget.FAULT, CRASH_RESOLVE)
        return Call(CallTarget.FAULT, HEAL)

    def finite_fault(self, commands: Sequence[Command], rng: random.Random) -> List[Command]:
        node_commands = [c.call for c in commands if not self.model.is_global(c.call)]
        calls = node_commands + [self.resolution_call(rng)] + self.settle_calls() + self.assertion_calls()
        result = renumber([Command(0, call) for call in calls])
        logger.debug(f"finite_fault: {len(commands)} commands -> {len(result)}")
        return result

    def single_success(self, commands: Sequence[Command]) -> List[Command]:
        work = [
            c.call for c in commands
            if not self.model.is_global(c.call)
            and not self.model.is_assertion(c.call)
            and c.call.target != CallTarget.ENGINE
        ]
        calls = work[:1] + self._global_calls(self.model.system_model.global_functions())
        if work:
            calls.append(Call(CallTarget.ENGINE, FORCED_FAILURE))
        return renumber([Command(0, call) for call in calls])
