"""
Fuzzer Engine - Runs the property: generate, transform, execute, shrink
"""
import time
import uuid
import random
import logging
from typing import Dict, List, Optional

from ..interfaces import IClusterBackend, IFaultModel, IFuzzerEngine, ILogger, ISystemModel, ITraceHooks
from ..models import Command, FuzzerConfig, PropertyResult, RunResult
from .command_executor import CommandExecutor
from .command_generator import CommandGenerator
from .config import validate_config
from .error_handler import ErrorHandler, ErrorContext, ErrorCategory, ErrorSeverity, SetupError
from .property_model import PropertyModel
from .run_context import RunContext
from .sequence_transformer import SequenceTransformer
from .shrinker import Shrinker
from .test_logger import FuzzerLogger
from .trace import LoggingTraceRecorder

logging.basicConfig(format='%(levelname)-5s | %(filename)s:%(lineno)-3d | %(message)s', level=logging.INFO, force=True)
logger = logging.getLogger(__name__)

cli_logger = logging.getLogger('cli')
cli_logger.addHandler(logging.StreamHandler())
cli_logger.propagate = False


class FuzzerEngine(IFuzzerEngine):
    """
    Property runner for model-based fault injection testing.

    Adapters not passed in are created from the configuration through the
    registry. One engine drives one cluster; test cases run one at a time.
    """

    def __init__(
        self,
        config: FuzzerConfig,
        system_model: Optional[ISystemModel] = None,
        fault_model: Optional[IFaultModel] = None,
        cluster: Optional[IClusterBackend] = None,
        trace: Optional[ITraceHooks] = None,
        fuzzer_logger: Optional[ILogger] = None,
        error_handler: Optional[ErrorHandler] = None
    ):
        validate_config(config)
        from . import registry

        self.config = config
        self.system_model = system_model or registry.create_system_model(config.system_model, config)
        self.fault_model = fault_model or registry.create_fault_model(config.fault_model, config)
        self.cluster = cluster or registry.create_cluster_backend(config.cluster_backend, config)
        self.trace = trace or LoggingTraceRecorder()
        self.logger = fuzzer_logger or FuzzerLogger(config.log_dir)
        self.error_handler = error_handler or ErrorHandler()

        self.model = PropertyModel(self.system_model, self.fault_model, config)
        self.generator = CommandGenerator(self.model, config)
        self.transformer = SequenceTransformer(self.model, config)
        self.executor = CommandExecutor(self.model, self.error_handler)
        self.shrinker = Shrinker(self.model, self.transformer, self.run_case, max_shrinks=config.max_shrinks)

        logger.info(f"Fuzzer Engine Initialized: {self.system_model.name} / {self.fault_model.name} "
                    f"on {type(self.cluster).__name__}")

    def run_property(self, num_tests: Optional[int] = None, seed: Optional[int] = None) -> PropertyResult:
        """
        Run up to ``num_tests`` generated cases and stop at the first failure.

        Every case gets its own seed drawn from the property seed, so a
        property seed reproduces the whole run.
        """
        num_tests = num_tests or self.config.num_tests
        if seed is None:
            seed = self.config.seed if self.config.seed is not None else random.randrange(2 ** 32)

        property_id = f"{self.system_model.name}_{seed}"
        result = PropertyResult(success=True, num_tests=num_tests, tests_run=0, seed=seed)
        self.logger.log_property_start(property_id, self.config)

        try:
            self.system_model.begin_property()
        except Exception as e:
            self.logger.log_error(property_id, f"begin_property failed: {e}")
            raise SetupError(f"begin_property failed for {self.system_model.name}: {e}") from e

        seeds = random.Random(seed)
        for case_number in range(1, num_tests + 1):
            case_seed = seeds.randrange(2 ** 32)
            generated = self.generator.generate(random.Random(case_seed))
            commands = self.transformer.transform(generated, random.Random(case_seed))

            run = self.run_case(commands)
            result.tests_run += 1
            result.command_names.update(run.command_names)
            self.logger.log_case(property_id, case_number, run)

            if case_number % 10 == 0:
                cli_logger.info(f"{case_number}/{num_tests} cases passed")

            if not run.success:
                cli_logger.info(f"Case {case_number} failed (case seed {case_seed}), shrinking")
                shrunk = self.shrinker.shrink(generated, case_seed, failing_run=run)
                result.success = False
                result.original_counterexample = commands
                result.counterexample = shrunk.transformed
                result.failing_run = shrunk.run or run
                result.shrink_steps = shrunk.steps
                self.logger.log_failing_run(result.failing_run)
                break

        result.end_time = time.time()
        self.logger.log_property_completion(property_id, result)
        return result

    def run_case(self, commands: List[Command]) -> RunResult:
        """Execute one sequence on started or reused nodes"""
        context = self.start_or_reload_nodes()
        try:
            context.trace.begin_case(context.trace_id, context.nodes)
            self._lifecycle_hook("begin_case", context)
            result = self.executor.run(commands, context)
            self._lifecycle_hook("end_case", context)
            context.trace.end_case(context.trace_id)
        except Exception:
            self.error_handler.cleanup_after_failure(self.cluster, self.fault_model, context)
            raise

        self.stop_nodes()
        return result

    def replay(self, commands: List[Command]) -> RunResult:
        """Run a saved sequence unchanged"""
        logger.info(f"Replaying {len(commands)} commands")
        return self.run_case(list(commands))

    def start_or_reload_nodes(self) -> RunContext:
        """Start nodes for a case, or reuse running ones with their faults cleared"""
        initial = self.model.initial_state()

        if self.config.restart_nodes or not self.cluster.is_running():
            if self.cluster.is_running():
                self.cluster.stop_nodes()
            try:
                addresses = self.cluster.start_nodes(initial.nodes, initial.joined_nodes)
            except SetupError:
                raise
            except Exception as e:
                self.error_handler.handle_error(ErrorContext(
                    category=ErrorCategory.CLUSTER_SETUP,
                    severity=ErrorSeverity.HIGH,
                    message=f"Failed to start nodes: {e}",
                    exception=e,
                    component="FuzzerEngine"
                ))
                raise SetupError(f"Failed to start nodes: {e}") from e
            return self._new_context(initial.nodes, addresses)

        addresses = {node: self.cluster.address(node) for node in initial.nodes}
        context = self._new_context(initial.nodes, addresses)
        # Reused nodes may carry fault flags from the previous case
        self.fault_model.reset(context)
        if self.config.full_restart:
            self.cluster.recluster(initial.joined_nodes)
        logger.debug(f"Reusing nodes {list(initial.nodes)} (full restart: {self.config.full_restart})")
        return context

    def stop_nodes(self) -> None:
        if self.config.restart_nodes:
            self.cluster.stop_nodes()

    def _new_context(self, nodes, addresses: Dict[str, str]) -> RunContext:
        return RunContext(
            config=self.config,
            nodes=tuple(nodes),
            addresses=dict(addresses),
            cluster=self.cluster,
            trace=self.trace,
            trace_id=f"{self.system_model.name}_{uuid.uuid4().hex[:8]}"
        )

    def _lifecycle_hook(self, hook: str, context: RunContext) -> None:
        try:
            getattr(self.system_model, hook)(context)
        except Exception as e:
            self.error_handler.handle_error(ErrorContext(
                category=ErrorCategory.CLUSTER_SETUP,
                severity=ErrorSeverity.HIGH,
                message=f"{self.system_model.name}.{hook} failed: {e}",
                exception=e,
                component="FuzzerEngine"
            ))
            raise SetupError(f"{self.system_model.name}.{hook} failed: {e}") from e
