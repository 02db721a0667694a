"""
Linearizable key-value store model

Reads must observe the last acknowledged write. Writes may time out, in
which case the model assumes the write was not applied.
"""
import logging
import random
from typing import Any, Dict, List

from .base import BaseSystemModel
from ..models import Call, ModelState, Response

logger = logging.getLogger(__name__)

KEYS = ["key_1", "key_2", "key_3"]


class LinearizableKVModel(BaseSystemModel):

    name = "linearizable_kv"

    def __init__(self, keys: List[str] = None, max_value: int = 1000):
        self.keys = list(keys or KEYS)
        self.max_value = max_value

    def commands(self, state: ModelState, rng: random.Random) -> List[Call]:
        node = self.pick_node(state, rng)
        key = rng.choice(self.keys)
        return [
            self.call("read", node, key),
            self.call("write", node, key, rng.randint(0, self.max_value)),
        ]

    def functions(self) -> List[str]:
        return ["read", "write"]

    def initial_state(self) -> Dict[str, Any]:
        return {}

    def precondition(self, node_state: Dict[str, Any], call: Call) -> bool:
        return call.function in self.functions()

    def postcondition(self, node_state: Dict[str, Any], call: Call, response: Response) -> bool:
        if call.function == "write":
            return response.is_ok or response.is_timeout
        if call.function == "read":
            _, key = call.args
            if key in node_state:
                passed = response.is_ok and response.value == node_state[key]
            else:
                passed = response.is_not_found
            if not passed:
                logger.debug(f"read {key}: expected {node_state.get(key, 'not_found')!r}, got {response}")
            return passed
        return False

    def next_state(self, state: ModelState, node_state: Dict[str, Any], response: Any, call: Call) -> Dict[str, Any]:
        if call.function == "write" and isinstance(response, Response) and response.is_ok:
            _, key, value = call.args
            return {**node_state, key: value}
        return node_state

    def execute(self, context, call: Call) -> Response:
        if call.function == "write":
            node, key, value = call.args
            return context.rpc(node, 'write', key, value)
        if call.function == "read":
            node, key = call.args
            return context.rpc(node, 'read', key)
        raise ValueError(f"Unsupported operation: {call.function}")
