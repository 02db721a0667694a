"""
Core data models for the Model Fuzzer
"""
import time
from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Dict, List, Any, Optional, Tuple
from enum import Enum


OK = "ok"
ERROR = "error"
TIMEOUT = "timeout"
NODEDOWN = "nodedown"
NOT_FOUND = "not_found"


class CallTarget(Enum):
    """Which component handles a symbolic call"""
    CLUSTER = "cluster"  # Membership changes
    SYSTEM = "system"  # System model operations
    FAULT = "fault"  # Fault model operations
    ENGINE = "engine"  # Engine-internal commands (forced_failure)


class Scheduler(Enum):
    """Post-processing strategy applied to generated command sequences"""
    DEFAULT = "default"
    FINITE_FAULT = "finite_fault"
    SINGLE_SUCCESS = "single_success"


@dataclass(frozen=True)
class Call:
    """A symbolic operation: target component, function name and arguments"""
    target: CallTarget
    function: str
    args: Tuple[Any, ...] = ()

    @property
    def node(self) -> Optional[Any]:
        """First argument, which is the target node for node-targeted calls"""
        return self.args[0] if self.args else None

    @property
    def name(self) -> str:
        return f"{self.target.value}:{self.function}"

    def descriptor(self) -> List[Any]:
        return [self.function, *self.args]

    def to_dict(self) -> Dict[str, Any]:
        return {'target': self.target.value, 'function': self.function, 'args': list(self.args)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Call':
        return cls(
            target=CallTarget(data['target']),
            function=data['function'],
            args=tuple(data.get('args') or ())
        )

    def __str__(self) -> str:
        args = ", ".join(repr(a) for a in self.args)
        return f"{self.target.value}:{self.function}({args})"


@dataclass(frozen=True)
class Command:
    """A symbolic call tagged with its 1-based position in the sequence"""
    var: int
    call: Call

    def to_dict(self) -> Dict[str, Any]:
        return {'var': self.var, **self.call.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Command':
        return cls(var=int(data['var']), call=Call.from_dict(data))

    def __str__(self) -> str:
        return f"var{self.var} = {self.call}"


@dataclass(frozen=True)
class SymbolicVar:
    """Placeholder for the result of a command that has not run yet"""
    var: int


@dataclass(frozen=True)
class Response:
    """Result of executing a call; timeouts and node failures are plain responses"""
    status: str
    value: Any = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls, value: Any = None) -> 'Response':
        return cls(status=OK, value=value)

    @classmethod
    def error(cls, reason: str, value: Any = None) -> 'Response':
        return cls(status=ERROR, value=value, reason=reason)

    @property
    def is_ok(self) -> bool:
        return self.status == OK

    @property
    def is_timeout(self) -> bool:
        return self.status == ERROR and self.reason == TIMEOUT

    @property
    def is_nodedown(self) -> bool:
        return self.status == ERROR and self.reason == NODEDOWN

    @property
    def is_not_found(self) -> bool:
        return self.status == ERROR and self.reason == NOT_FOUND

    def to_dict(self) -> Dict[str, Any]:
        data = {'status': self.status, 'value': self.value}
        if self.reason is not None:
            data['reason'] = self.reason
        return data

    def __str__(self) -> str:
        if self.is_ok:
            return f"ok({self.value!r})"
        return f"error({self.reason})"


@dataclass(frozen=True)
class ModelState:
    """
    Abstract state threaded through one test run.

    Never mutated in place: transitions build a new instance with
    ``ModelState.evolve``. ``fault_model_state`` and ``node_state`` are owned
    by the fault model and system model respectively.
    """
    counter: int
    nodes: Tuple[str, ...]
    joined_nodes: Tuple[str, ...]
    fault_model_state: Any = None
    node_state: Any = None

    def evolve(self, **changes) -> 'ModelState':
        return replace(self, **changes)

    def is_joined(self, node: str) -> bool:
        return node in self.joined_nodes

    def summary(self) -> Dict[str, Any]:
        return {
            'counter': self.counter,
            'nodes': list(self.nodes),
            'joined_nodes': list(self.joined_nodes),
            'fault_model_state': repr(self.fault_model_state),
            'node_state': repr(self.node_state),
        }


@dataclass
class FuzzerConfig:
    """Every recognized fuzzer option"""
    system_model: Optional[str] = None  # Mandatory
    fault_model: str = "crash"
    cluster_backend: str = "simulated"
    scheduler: Scheduler = Scheduler.DEFAULT
    fault_injection: bool = False
    membership_changes: bool = False
    restart_nodes: bool = True  # Stop nodes after every case
    full_restart: bool = False  # Recluster when reusing nodes
    cluster_nodes: bool = True  # Start with every node joined
    num_tests: int = 100
    max_commands: int = 20
    seed: Optional[int] = None
    max_shrinks: int = 200
    command_timeout: float = 5.0  # Seconds
    wait_retries: int = 20
    wait_delay: float = 0.05  # Seconds
    max_faults: int = 1
    min_joined_nodes: int = 3
    min_members_for_leave: int = 3
    node_addresses: Dict[str, str] = field(default_factory=dict)  # node -> host:port
    log_dir: str = "/tmp/model-fuzzer/logs"
    precondition_debug: bool = False
    postcondition_debug: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.__dict__)
        data['scheduler'] = self.scheduler.value
        data['node_addresses'] = dict(self.node_addresses)
        return data


@dataclass
class WaitResult:
    """Outcome of a bounded poll"""
    success: bool
    attempts: int
    last_value: Any = None

    def __bool__(self) -> bool:
        return self.success


@dataclass
class CommandOutcome:
    """Record of one executed command"""
    command: Command
    counter: int  # Model counter before the command
    response: Optional[Response] = None
    passed: bool = True
    precondition_held: bool = True
    error: Optional[str] = None
    duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'command': self.command.to_dict(),
            'counter': self.counter,
            'response': self.response.to_dict() if self.response else None,
            'passed': self.passed,
            'precondition_held': self.precondition_held,
            'error': self.error,
            'duration': self.duration,
        }


@dataclass
class RunResult:
    """Result of executing one command sequence"""
    success: bool
    commands: List[Command]
    history: List[CommandOutcome] = field(default_factory=list)
    final_state: Optional[ModelState] = None
    failed_command: Optional[Command] = None
    failure_state: Optional[ModelState] = None  # Model state before the first failure
    error_message: Optional[str] = None
    command_names: Dict[str, int] = field(default_factory=dict)
    trace_id: Optional[str] = None
    start_time: float = field(default_factory=time.time)
    end_time: float = 0.0

    @property
    def duration(self) -> float:
        return max(0.0, self.end_time - self.start_time)

    @property
    def failed_outcomes(self) -> List[CommandOutcome]:
        return [outcome for outcome in self.history if not outcome.passed]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'commands': [c.to_dict() for c in self.commands],
            'history': [o.to_dict() for o in self.history],
            'final_state': self.final_state.summary() if self.final_state else None,
            'failed_command': self.failed_command.to_dict() if self.failed_command else None,
            'failure_state': self.failure_state.summary() if self.failure_state else None,
            'error_message': self.error_message,
            'command_names': dict(self.command_names),
            'trace_id': self.trace_id,
            'duration': self.duration,
        }


@dataclass
class PropertyResult:
    """Aggregate result of running the property over many test cases"""
    success: bool
    num_tests: int
    tests_run: int
    seed: int
    command_names: Counter = field(default_factory=Counter)
    counterexample: Optional[List[Command]] = None  # Shrunk sequence
    original_counterexample: Optional[List[Command]] = None
    failing_run: Optional[RunResult] = None
    shrink_steps: int = 0
    start_time: float = field(default_factory=time.time)
    end_time: float = 0.0

    @property
    def duration(self) -> float:
        return max(0.0, self.end_time - self.start_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'num_tests': self.num_tests,
            'tests_run': self.tests_run,
            'seed': self.seed,
            'command_names': dict(self.command_names),
            'counterexample': [c.to_dict() for c in self.counterexample] if self.counterexample else None,
            'original_counterexample': (
                [c.to_dict() for c in self.original_counterexample] if self.original_counterexample else None
            ),
            'failing_run': self.failing_run.to_dict() if self.failing_run else None,
            'shrink_steps': self.shrink_steps,
            'duration': self.duration,
        }
