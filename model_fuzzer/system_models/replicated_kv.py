"""
Eventually consistent replicated key-value model

Updates are acknowledged by any node. The global ``check_delivery``
assertion requires every acknowledged key on every clustered node that is
still up.
"""
import logging
import random
import time
from typing import Any, Dict, List

from .base import BaseSystemModel
from ..models import Call, ModelState, Response

logger = logging.getLogger(__name__)


class ReplicatedKVModel(BaseSystemModel):

    name = "replicated_kv"

    def __init__(self, keys: List[str] = None, max_value: int = 1000):
        self.keys = list(keys or ["key_1", "key_2", "key_3"])
        self.max_value = max_value

    def commands(self, state: ModelState, rng: random.Random) -> List[Call]:
        # sleep is global, it lets the nodes settle between updates
        return [
            self.call("update", self.pick_node(state, rng), rng.choice(self.keys), rng.randint(0, self.max_value)),
            self.call("sleep"),
        ]

    def functions(self) -> List[str]:
        return ["update"]

    def global_functions(self) -> List[str]:
        return ["check_delivery", "sleep"]

    def assertion_functions(self) -> List[str]:
        return ["check_delivery"]

    def initial_state(self) -> Dict[str, Any]:
        return {}

    def precondition(self, node_state: Dict[str, Any], call: Call) -> bool:
        return call.function in self.functions() or call.function in self.global_functions()

    def postcondition(self, node_state: Dict[str, Any], call: Call, response: Response) -> bool:
        if call.function == "update":
            return response.is_ok
        if call.function == "sleep":
            return True
        if call.function == "check_delivery":
            return self._check_delivery(node_state, response)
        return False

    def _check_delivery(self, node_state: Dict[str, Any], response: Response) -> bool:
        if not response.is_ok:
            return False
        passed = True
        for node, result in response.value.items():
            if isinstance(result, Response):
                if result.is_nodedown:
                    continue
                logger.debug(f"check_delivery: {node} returned {result}")
                return False
            for key in node_state:
                if key not in result:
                    logger.debug(f"check_delivery: {node} didn't receive {key}, only received {sorted(result)}")
                    passed = False
        return passed

    def next_state(self, state: ModelState, node_state: Dict[str, Any], response: Any, call: Call) -> Dict[str, Any]:
        if call.function == "update" and isinstance(response, Response) and response.is_ok:
            _, key, value = call.args
            return {**node_state, key: value}
        return node_state

    def execute(self, context, call: Call) -> Response:
        if call.function == "update":
            node, key, value = call.args
            return context.rpc(node, 'write', key, value)
        if call.function == "sleep":
            time.sleep(context.config.wait_delay)
            return Response.ok()
        if call.function == "check_delivery":
            return Response.ok(self._collect(context))
        raise ValueError(f"Unsupported operation: {call.function}")

    def _collect(self, context) -> Dict[str, Any]:
        """Local keys of every node that is part of a cluster, or its error"""
        results = {}
        for node in context.nodes:
            members = context.rpc(node, 'members')
            if not members.is_ok:
                results[node] = members
                continue
            if members.value == [node]:
                continue
            dump = context.rpc(node, 'dump')
            results[node] = sorted(dump.value) if dump.is_ok else dump
        return results
