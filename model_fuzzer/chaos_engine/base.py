"""
Base classes for fault models
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, List

from ..interfaces import IFaultModel
from ..models import Call, Response

logger = logging.getLogger(__name__)

HEAL = "resolve_all_faults_with_heal"
CRASH_RESOLVE = "resolve_all_faults_with_crash"


class BaseFaultModel(IFaultModel, ABC):
    """
    Shared behaviour of fault models.

    Resolution commands are global: heal undoes every active fault, while
    crash-resolution turns every active fault into a permanent crash.
    """

    def __init__(self, max_faults: int = 1):
        self.max_faults = max_faults

    def global_functions(self) -> List[str]:
        return [HEAL, CRASH_RESOLVE]

    def postcondition(self, fault_state: Any, call: Call, response: Response) -> bool:
        if call.function in self.global_functions():
            return True
        return isinstance(response, Response) and response.is_ok

    def execute(self, context, call: Call) -> Response:
        if call.function == HEAL:
            logger.info(f"Healing {len(context.active_faults)} active faults")
            self.heal_all(context)
        elif call.function == CRASH_RESOLVE:
            logger.info(f"Crash-resolving {len(context.active_faults)} active faults")
            self.crash_resolve(context)
        else:
            self.inject(context, call)
        return Response.ok()

    def reset(self, context) -> None:
        context.cluster.reset_faults()
        context.active_faults.clear()

    @abstractmethod
    def inject(self, context, call: Call) -> None:
        """Apply a node-targeted fault call to the live cluster"""
        pass

    @abstractmethod
    def heal_all(self, context) -> None:
        pass

    @abstractmethod
    def crash_resolve(self, context) -> None:
        pass
