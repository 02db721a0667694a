"""
Base interfaces and abstract classes for all major components
"""
import random
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence
from .models import (
    Call, Command, ModelState, Response, RunResult, PropertyResult, FuzzerConfig
)


class ISystemModel(ABC):
    """Interface for a system-under-test adapter"""

    name: str = "system"
    # Joined members required before node commands are legal; None uses FuzzerConfig.min_joined_nodes
    min_joined_nodes: Optional[int] = None

    @abstractmethod
    def num_nodes(self) -> int:
        """Number of nodes the system runs on"""
        pass

    @abstractmethod
    def commands(self, state: ModelState, rng: random.Random) -> List[Call]:
        """Candidate node-targeted calls for the current model state"""
        pass

    @abstractmethod
    def functions(self) -> List[str]:
        """Names of node-targeted functions"""
        pass

    @abstractmethod
    def global_functions(self) -> List[str]:
        """Names of cluster-wide functions, in declaration order"""
        pass

    @abstractmethod
    def assertion_functions(self) -> List[str]:
        """Names of side-effect-free check functions"""
        pass

    @abstractmethod
    def initial_state(self) -> Any:
        """Initial opaque node state"""
        pass

    @abstractmethod
    def precondition(self, node_state: Any, call: Call) -> bool:
        """Whether the call is legal for the node state"""
        pass

    @abstractmethod
    def postcondition(self, node_state: Any, call: Call, response: Response) -> bool:
        """Whether the response is acceptable for the pre-call node state"""
        pass

    @abstractmethod
    def next_state(self, state: ModelState, node_state: Any, response: Any, call: Call) -> Any:
        """New node state after the call"""
        pass

    @abstractmethod
    def execute(self, context, call: Call) -> Response:
        """Perform the call against the running cluster"""
        pass

    def begin_property(self) -> None:
        """Called once before any test case runs"""
        pass

    def begin_case(self, context) -> None:
        """Called once per test case after the nodes are up"""
        pass

    def end_case(self, context) -> None:
        """Called once per test case before the nodes go down"""
        pass


class IFaultModel(ABC):
    """Interface for a fault injection adapter"""

    name: str = "fault"

    @abstractmethod
    def commands(self, joined_nodes: Sequence[str], rng: random.Random) -> List[Call]:
        """Candidate fault calls legal for the given membership"""
        pass

    @abstractmethod
    def functions(self, joined_nodes: Sequence[str]) -> List[str]:
        """Names of node-targeted fault functions"""
        pass

    @abstractmethod
    def global_functions(self) -> List[str]:
        """Names of cluster-wide fault resolution functions"""
        pass

    @abstractmethod
    def initial_state(self) -> Any:
        """Initial opaque fault state"""
        pass

    @abstractmethod
    def precondition(self, fault_state: Any, call: Call) -> bool:
        """Whether the fault call is legal for the fault state"""
        pass

    @abstractmethod
    def postcondition(self, fault_state: Any, call: Call, response: Response) -> bool:
        """Whether the fault call response is acceptable"""
        pass

    @abstractmethod
    def next_state(self, fault_state: Any, response: Any, call: Call) -> Any:
        """New fault state after the call"""
        pass

    @abstractmethod
    def is_crashed(self, fault_state: Any, node: str) -> bool:
        """Whether the node is currently considered faulted"""
        pass

    @abstractmethod
    def num_resolvable_faults(self, fault_state: Any) -> int:
        """Number of faults a resolution command would clear"""
        pass

    @abstractmethod
    def execute(self, context, call: Call) -> Response:
        """Inject or resolve a fault on the running cluster"""
        pass

    @abstractmethod
    def reset(self, context) -> None:
        """Clear every fault flag on reused nodes"""
        pass


class ITraceHooks(ABC):
    """Interface for the command-boundary trace hooks"""

    @abstractmethod
    def enter_command(self, node: str, descriptor: List[Any]) -> None:
        """Called before a command is dispatched"""
        pass

    @abstractmethod
    def exit_command(self, node: str, descriptor: List[Any]) -> None:
        """Called after a command returns, fails or times out"""
        pass

    def begin_case(self, trace_id: str, nodes: Sequence[str]) -> None:
        """Reset and identify the trace for a new test case"""
        pass

    def end_case(self, trace_id: str) -> None:
        """Finish the trace of a test case"""
        pass


class IClusterBackend(ABC):
    """Interface for the cluster the commands run against"""

    @abstractmethod
    def start_nodes(self, nodes: Sequence[str], joined_nodes: Sequence[str]) -> Dict[str, str]:
        """Bring nodes up with the given initial membership, return node -> address"""
        pass

    @abstractmethod
    def stop_nodes(self) -> None:
        """Bring every node down"""
        pass

    @abstractmethod
    def is_running(self) -> bool:
        """Whether nodes are up"""
        pass

    @abstractmethod
    def reset_faults(self) -> None:
        """Clear crash, partition and faulted flags on every node"""
        pass

    @abstractmethod
    def recluster(self, joined_nodes: Sequence[str]) -> None:
        """Wipe data and rebuild membership from scratch"""
        pass

    @abstractmethod
    def rpc(self, node: str, operation: str, *args, timeout: Optional[float] = None) -> Response:
        """Invoke an operation on one node"""
        pass

    @abstractmethod
    def crash(self, node: str) -> None:
        """Make a node unreachable"""
        pass

    @abstractmethod
    def restart(self, node: str) -> None:
        """Bring a crashed node back and resynchronize it"""
        pass

    @abstractmethod
    def partition(self, node_a: str, node_b: str) -> None:
        """Drop traffic between two nodes"""
        pass

    @abstractmethod
    def heal_partition(self, node_a: str, node_b: str) -> None:
        """Restore traffic between two nodes"""
        pass

    @abstractmethod
    def address(self, node: str) -> str:
        """Resolved address of a node"""
        pass


class IFuzzerEngine(ABC):
    """Interface for the property runner"""

    @abstractmethod
    def run_property(self, num_tests: Optional[int] = None, seed: Optional[int] = None) -> PropertyResult:
        """Generate and run test cases until one fails or all pass"""
        pass

    @abstractmethod
    def run_case(self, commands: List[Command]) -> RunResult:
        """Run one command sequence on fresh or reset nodes"""
        pass

    @abstractmethod
    def replay(self, commands: List[Command]) -> RunResult:
        """Run a saved command sequence unchanged"""
        pass


class ILogger(ABC):
    """Interface for test logging and reporting"""

    @abstractmethod
    def log_property_start(self, property_id: str, config: FuzzerConfig) -> None:
        """Log the start of a property run"""
        pass

    @abstractmethod
    def log_case(self, property_id: str, case_number: int, result: RunResult) -> None:
        """Log one executed test case"""
        pass

    @abstractmethod
    def log_error(self, property_id: str, error: str, context: Optional[Dict[str, Any]] = None) -> None:
        """Log an error"""
        pass

    @abstractmethod
    def log_property_completion(self, property_id: str, result: PropertyResult) -> None:
        """Log the final property verdict"""
        pass
