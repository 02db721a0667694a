"""
Error Handler - Error taxonomy, retry logic and cleanup procedures

Per-command failures are recorded and never abort a run. Setup failures
and adapter mismatches are fatal to the run, and configuration errors are
fatal before any run starts.
"""
import time
import random
import logging
from collections import Counter
from typing import Optional, Callable, Any, Dict, List, Tuple
from enum import Enum
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class FuzzerError(Exception):
    """Base class for fuzzer errors"""


class ConfigurationError(FuzzerError):
    """Missing or invalid configuration, raised before any run begins"""


class SetupError(FuzzerError):
    """Cluster bring-up or adapter lifecycle hook failed"""


class AdapterMismatchError(FuzzerError):
    """A command is recognized by neither adapter nor the engine"""

    def __init__(self, call, message: Optional[str] = None):
        self.call = call
        super().__init__(message or f"Command not recognized by any adapter: {call}")


class ErrorSeverity(Enum):
    LOW = "low"  # Logged only
    MEDIUM = "medium"  # Recorded as a failed command
    HIGH = "high"  # Fails the run
    FATAL = "fatal"  # Stops the property


class ErrorCategory(Enum):
    CONFIGURATION = "configuration"
    CLUSTER_SETUP = "cluster_setup"
    COMMAND_EXECUTION = "command_execution"
    ADAPTER_MISMATCH = "adapter_mismatch"
    FAULT_INJECTION = "fault_injection"
    CONVERGENCE = "convergence"
    RESOURCE_CLEANUP = "resource_cleanup"


_LOG_LEVELS = {
    ErrorSeverity.LOW: logging.INFO,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.FATAL: logging.CRITICAL,
}


@dataclass
class ErrorContext:
    """Where an error happened and how bad it is"""
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    exception: Optional[Exception] = None
    component: Optional[str] = None
    node: Optional[str] = None
    command: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def describe(self) -> str:
        text = f"[{self.category.value}] {self.message}"
        if self.component:
            text = f"[{self.component}] {text}"
        if self.command:
            text += f" (command: {self.command})"
        if self.node:
            text += f" (node: {self.node})"
        return text


@dataclass
class RetryConfig:
    """Backoff settings for node readiness checks"""
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before retrying after failed ``attempt`` (1-based)"""
        delay = min(self.initial_delay * self.exponential_base ** (attempt - 1), self.max_delay)
        if self.jitter:
            delay *= 0.5 + random.random()
        return delay


class ErrorHandler:
    """
    Records errors raised while running a property and decides, per
    category, whether the current run can go on. Also retries node
    readiness checks and cleans up after a failed case.
    """

    def __init__(self):
        self.error_history: List[ErrorContext] = []
        self.recovery_strategies: Dict[ErrorCategory, Callable[[ErrorContext], bool]] = {
            ErrorCategory.CLUSTER_SETUP: self._recover_cluster_setup,
            ErrorCategory.COMMAND_EXECUTION: self._recover_command_execution,
            ErrorCategory.FAULT_INJECTION: self._recover_fault_injection,
            ErrorCategory.CONVERGENCE: self._recover_convergence,
            ErrorCategory.ADAPTER_MISMATCH: self._recover_adapter_mismatch,
        }

    def handle_error(self, error_context: ErrorContext) -> bool:
        """Record an error and return whether the current run may continue"""
        logger.log(_LOG_LEVELS[error_context.severity], error_context.describe())
        self.error_history.append(error_context)

        if error_context.severity == ErrorSeverity.FATAL:
            return False

        strategy = self.recovery_strategies.get(error_context.category)
        if strategy is None:
            logger.warning(f"No recovery strategy for {error_context.category.value}")
            return error_context.severity == ErrorSeverity.LOW
        try:
            return strategy(error_context)
        except Exception as e:
            logger.error(f"Recovery strategy for {error_context.category.value} failed: {e}")
            return False

    def retry_with_backoff(
        self,
        operation: Callable,
        config: RetryConfig,
        error_category: ErrorCategory,
        operation_name: str = "operation",
        **kwargs
    ) -> Tuple[bool, Any]:
        """
        Call ``operation`` until it returns without raising, at most
        ``config.max_attempts`` times. Returns ``(True, result)`` or
        ``(False, None)`` once every attempt failed.
        """
        last_exception = None

        for attempt in range(1, config.max_attempts + 1):
            try:
                return True, operation(**kwargs)
            except Exception as e:
                last_exception = e
                final = attempt == config.max_attempts
                logger.warning(f"{operation_name} failed (attempt {attempt}/{config.max_attempts}): {e}")
                self.error_history.append(ErrorContext(
                    category=error_category,
                    severity=ErrorSeverity.HIGH if final else ErrorSeverity.MEDIUM,
                    message=f"{operation_name} failed: {e}",
                    exception=e,
                    metadata={'attempt': attempt, 'max_attempts': config.max_attempts}
                ))
                if not final:
                    time.sleep(config.delay_before(attempt))

        logger.error(f"{operation_name} gave up after {config.max_attempts} attempts")
        self.error_history.append(ErrorContext(
            category=error_category,
            severity=ErrorSeverity.HIGH,
            message=f"{operation_name} failed after all retry attempts",
            exception=last_exception,
            metadata={'attempts': config.max_attempts}
        ))
        return False, None

    def _recover_cluster_setup(self, error_context: ErrorContext) -> bool:
        # Setup failures are never retried silently
        return False

    def _recover_command_execution(self, error_context: ErrorContext) -> bool:
        return error_context.severity in (ErrorSeverity.LOW, ErrorSeverity.MEDIUM)

    def _recover_fault_injection(self, error_context: ErrorContext) -> bool:
        return error_context.severity in (ErrorSeverity.LOW, ErrorSeverity.MEDIUM)

    def _recover_convergence(self, error_context: ErrorContext) -> bool:
        # Exhausted waits surface as failed postconditions
        return True

    def _recover_adapter_mismatch(self, error_context: ErrorContext) -> bool:
        return False

    def cleanup_after_failure(self, cluster=None, fault_model=None, context=None) -> bool:
        """Reset faults and stop nodes after a case aborted; every step is attempted"""
        steps = []
        if fault_model is not None and context is not None:
            steps.append(("reset faults", lambda: fault_model.reset(context)))
        if cluster is not None:
            steps.append(("stop nodes", lambda: cluster.is_running() and cluster.stop_nodes()))

        failed = []
        for name, step in steps:
            try:
                step()
            except Exception as e:
                logger.error(f"Cleanup could not {name}: {e}")
                failed.append(name)

        if failed:
            self.error_history.append(ErrorContext(
                category=ErrorCategory.RESOURCE_CLEANUP,
                severity=ErrorSeverity.MEDIUM,
                message=f"Cleanup failed to {', '.join(failed)}"
            ))
            return False
        logger.info("Cleanup after failure completed")
        return True

    def get_error_summary(self) -> Dict[str, Any]:
        return {
            'total_errors': len(self.error_history),
            'by_category': dict(Counter(e.category.value for e in self.error_history)),
            'by_severity': dict(Counter(e.severity.value for e in self.error_history)),
            'recent_errors': [
                {'category': e.category.value, 'severity': e.severity.value, 'message': e.message}
                for e in self.error_history[-10:]
            ]
        }

    def clear_history(self):
        self.error_history.clear()
