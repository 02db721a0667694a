"""
Base class for system models running on a replicated store cluster
"""
import logging
import random
from abc import ABC
from typing import List

from ..interfaces import ISystemModel
from ..models import Call, CallTarget, ModelState

logger = logging.getLogger(__name__)


class BaseSystemModel(ISystemModel, ABC):
    """Common node selection and per-case data reset"""

    nodes_count: int = 4

    def num_nodes(self) -> int:
        return self.nodes_count

    def global_functions(self) -> List[str]:
        return []

    def assertion_functions(self) -> List[str]:
        return []

    def pick_node(self, state: ModelState, rng: random.Random) -> str:
        """Random target node, preferring joined members"""
        return rng.choice(list(state.joined_nodes or state.nodes))

    def call(self, function: str, *args) -> Call:
        return Call(CallTarget.SYSTEM, function, tuple(args))

    def begin_case(self, context) -> None:
        # Reused nodes may still hold data from the previous case
        for node in context.nodes:
            context.rpc(node, 'flush')
        logger.debug(f"{self.name}: flushed data on {len(context.nodes)} nodes")
