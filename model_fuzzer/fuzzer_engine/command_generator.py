"""
Command Generator - Builds random symbolic command sequences
"""
import logging
import random
from collections import Counter
from typing import List, Optional, Sequence, Tuple

from .property_model import PropertyModel
from ..models import Call, Command, FuzzerConfig, ModelState, SymbolicVar

logger = logging.getLogger(__name__)


class CommandGenerator:
    """
    Generates sequences of legal symbolic commands.

    Each step is a frequency-weighted choice over three pools: membership
    changes, faults and system operations. A disabled pool contributes no
    weight. The model state is advanced symbolically while generating so
    that every chosen command satisfies its precondition.
    """

    def __init__(self, model: PropertyModel, config: FuzzerConfig, max_tries_per_step: int = 100):
        self.model = model
        self.config = config
        self.max_tries_per_step = max_tries_per_step

    def candidates(self, state: ModelState, rng: random.Random) -> List[Tuple[int, Call]]:
        """Weighted candidate calls for one generation step"""
        weighted = []
        if self.config.membership_changes:
            weighted.extend((1, call) for call in self.model.membership_commands(state, rng))
        if self.config.fault_injection:
            weighted.extend((1, call) for call in self.model.fault_model.commands(state.joined_nodes, rng))
        weighted.extend((1, call) for call in self.model.system_model.commands(state, rng))
        return weighted

    def choose(self, state: ModelState, rng: random.Random) -> Optional[Call]:
        weighted = self.candidates(state, rng)
        if not weighted:
            return None
        weights = [weight for weight, _ in weighted]
        return rng.choices([call for _, call in weighted], weights=weights, k=1)[0]

    def next_command(self, state: ModelState, rng: random.Random) -> Optional[Call]:
        """A call whose precondition holds, or None when none is found"""
        for _ in range(self.max_tries_per_step):
            call = self.choose(state, rng)
            if call is None:
                return None
            if self.model.precondition(state, call):
                return call
        return None

    def generate(self, rng: random.Random, length: Optional[int] = None) -> List[Command]:
        """Generate a sequence of up to ``length`` commands"""
        if length is None:
            length = rng.randint(1, self.config.max_commands)

        state = self.model.initial_state()
        commands = []
        for var in range(1, length + 1):
            call = self.next_command(state, rng)
            if call is None:
                logger.debug(f"No legal command after {self.max_tries_per_step} tries, stopping at {len(commands)}")
                break
            commands.append(Command(var, call))
            state = self.model.next_state(state, SymbolicVar(var), call)
        return commands


def command_names(commands: Sequence[Command]) -> Counter:
    """Histogram of command names"""
    return Counter(command.call.name for command in commands)
