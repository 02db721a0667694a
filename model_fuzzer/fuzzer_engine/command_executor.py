"""
Command Executor - Runs a symbolic command sequence against the live cluster
"""
import time
import logging
from typing import List, Optional, Sequence

from .command_generator import command_names
from .error_handler import (
    ErrorHandler, ErrorContext, ErrorCategory, ErrorSeverity, AdapterMismatchError
)
from .property_model import PropertyModel, JOIN_CLUSTER, LEAVE_CLUSTER, FORCED_FAILURE
from .run_context import RunContext
from ..models import (
    Call, CallTarget, Command, CommandOutcome, ModelState, Response, RunResult, WaitResult
)
from ..utils.wait_utils import wait_until_nodes

logger = logging.getLogger(__name__)

MEMBERSHIP_NOT_CONVERGED = "membership_not_converged"


class CommandExecutor:
    """Executes commands strictly in order, checking each result against the model"""

    def __init__(self, model: PropertyModel, error_handler: Optional[ErrorHandler] = None):
        self.model = model
        self.error_handler = error_handler or ErrorHandler()

    def run(self, commands: Sequence[Command], context: RunContext) -> RunResult:
        """
        Run every command and return the aggregate verdict.

        A failed postcondition marks the run failed but execution continues.
        The model transition is applied regardless of the verdict. An
        illegal command or an unrecognized command stops the run.
        """
        state = self.model.initial_state()
        result = RunResult(success=True, commands=list(commands), trace_id=context.trace_id)

        for command in commands:
            outcome = CommandOutcome(command=command, counter=state.counter)
            result.history.append(outcome)

            if not self.model.precondition(state, command.call):
                outcome.precondition_held = False
                outcome.passed = False
                outcome.error = "precondition does not hold"
                self._fail(result, command, state, f"Precondition does not hold for {command}")
                break

            started = time.time()
            response, error = self._execute(command.call, context)
            outcome.duration = time.time() - started
            logger.debug(f"{command} took {outcome.duration:.3f}s")
            outcome.response = response
            outcome.error = error

            try:
                passed = self.model.postcondition(state, command.call, response)
            except AdapterMismatchError as e:
                self.error_handler.handle_error(ErrorContext(
                    category=ErrorCategory.ADAPTER_MISMATCH,
                    severity=ErrorSeverity.FATAL,
                    message=str(e),
                    component="CommandExecutor",
                    command=str(command)
                ))
                outcome.passed = False
                outcome.error = str(e)
                self._fail(result, command, state, str(e))
                break

            outcome.passed = passed and error is None
            if not outcome.passed:
                logger.warning(f"Postcondition failed for {command}: {response}")
                self._fail(result, command, state, f"Postcondition failed for {command}: {response}")

            state = self.model.next_state(state, response, command.call)

        result.final_state = state
        result.command_names = dict(command_names(commands))
        result.end_time = time.time()
        return result

    def _fail(self, result: RunResult, command: Command, state: ModelState, message: str) -> None:
        if result.success:
            result.failed_command = command
            result.failure_state = state
            result.error_message = message
        result.success = False

    def _execute(self, call: Call, context: RunContext):
        """Dispatch one call between the trace hooks, returning (response, error)"""
        node = self.normalize_node(call, context)
        descriptor = call.descriptor()

        context.trace.enter_command(node, descriptor)
        try:
            return self.dispatch(call, context), None
        except Exception as e:
            self.error_handler.handle_error(ErrorContext(
                category=ErrorCategory.COMMAND_EXECUTION,
                severity=ErrorSeverity.MEDIUM,
                message=f"{call} raised {type(e).__name__}: {e}",
                exception=e,
                component="CommandExecutor",
                node=node,
                command=str(call)
            ))
            return Response.error(type(e).__name__, str(e)), str(e)
        finally:
            context.trace.exit_command(node, descriptor)

    def normalize_node(self, call: Call, context: RunContext) -> str:
        """Resolved address for node-targeted calls, the runner for global ones"""
        if call.target == CallTarget.CLUSTER or self.model.is_node_command(call, context.nodes):
            return context.resolve(call.node)
        return context.runner

    def dispatch(self, call: Call, context: RunContext) -> Response:
        if call.target == CallTarget.CLUSTER:
            if call.function == JOIN_CLUSTER:
                return self.sync_join_cluster(context, *call.args)
            if call.function == LEAVE_CLUSTER:
                return self.sync_leave_cluster(context, *call.args)
        elif call.target == CallTarget.SYSTEM:
            return self.model.system_model.execute(context, call)
        elif call.target == CallTarget.FAULT:
            return self.model.fault_model.execute(context, call)
        elif call.target == CallTarget.ENGINE and call.function == FORCED_FAILURE:
            return Response.ok()
        raise ValueError(f"Unsupported command: {call}")

    # Membership changes

    def sync_join_cluster(self, context: RunContext, node: str, join_node: str) -> Response:
        members = context.rpc(join_node, 'members')
        if not members.is_ok:
            return members
        logger.info(f"Joining {node} to cluster at {join_node} with members {members.value}")

        joined = context.rpc(join_node, 'join', node)
        if not joined.is_ok:
            return joined

        desired = members.value + [node]
        wait = self.wait_for_membership(context, desired)
        if not wait.success:
            return Response.error(MEMBERSHIP_NOT_CONVERGED, desired)
        return context.rpc(join_node, 'members')

    def sync_leave_cluster(self, context: RunContext, node: str) -> Response:
        members = context.rpc(node, 'members')
        if not members.is_ok:
            return members
        logger.info(f"Removing {node} from cluster with members {members.value}")

        # First member other than the leaving node that is up
        left = Response.error("no_coordinator")
        coordinator = None
        for member in members.value:
            if member == node:
                continue
            left = context.rpc(member, 'leave', node)
            if not left.is_nodedown:
                coordinator = member
                break
        if coordinator is None or not left.is_ok:
            return left

        desired = [m for m in members.value if m != node]
        wait = self.wait_for_membership(context, desired)
        if not wait.success:
            return Response.error(MEMBERSHIP_NOT_CONVERGED, desired)
        return context.rpc(coordinator, 'members')

    def wait_for_membership(self, context: RunContext, desired: List[str]) -> WaitResult:
        """Wait until every reachable desired member reports the desired membership"""
        def agrees(member: str) -> bool:
            response = context.rpc(member, 'members')
            if response.is_nodedown:
                return True
            return response.is_ok and sorted(response.value) == sorted(desired)

        wait = wait_until_nodes(
            desired, agrees,
            retries=context.config.wait_retries,
            delay=context.config.wait_delay
        )
        if not wait.success:
            self.error_handler.handle_error(ErrorContext(
                category=ErrorCategory.CONVERGENCE,
                severity=ErrorSeverity.MEDIUM,
                message=f"Nodes did not agree on membership {desired} after {wait.attempts} attempts",
                component="CommandExecutor"
            ))
        return wait
