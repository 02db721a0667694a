"""
Tests for error handling and recovery mechanisms
"""
import pytest
from unittest.mock import Mock, patch

from model_fuzzer.fuzzer_engine.error_handler import (
    ErrorHandler, ErrorContext, ErrorCategory, ErrorSeverity, RetryConfig,
    AdapterMismatchError, ConfigurationError, FuzzerError, SetupError
)
from model_fuzzer.models import Call, CallTarget


class TestExceptions:
    """Test the fuzzer exception hierarchy"""

    def test_hierarchy(self):
        assert issubclass(ConfigurationError, FuzzerError)
        assert issubclass(SetupError, FuzzerError)
        assert issubclass(AdapterMismatchError, FuzzerError)

    def test_adapter_mismatch_keeps_call(self):
        call = Call(CallTarget.SYSTEM, "bogus", ("node_1",))
        error = AdapterMismatchError(call)

        assert error.call is call
        assert "system:bogus" in str(error)


class TestRetryConfig:
    """Test RetryConfig dataclass"""

    def test_default_retry_config(self):
        config = RetryConfig()

        assert config.max_attempts == 3
        assert config.initial_delay == 1.0
        assert config.exponential_base == 2.0
        assert config.jitter is True

    def test_delay_before_caps_at_max_delay(self):
        config = RetryConfig(initial_delay=1.0, max_delay=3.0, jitter=False)
        assert [config.delay_before(a) for a in (1, 2, 3, 4)] == [1.0, 2.0, 3.0, 3.0]

    def test_jitter_stays_within_bounds(self):
        config = RetryConfig(initial_delay=2.0)
        for _ in range(50):
            assert 1.0 <= config.delay_before(1) <= 3.0


class TestErrorHandler:
    """Test ErrorHandler class"""

    def test_initialization(self):
        handler = ErrorHandler()

        assert len(handler.error_history) == 0
        assert ErrorCategory.ADAPTER_MISMATCH in handler.recovery_strategies

    def test_command_errors_continue(self):
        """Test a failed command does not abort the run"""
        handler = ErrorHandler()

        context = ErrorContext(
            category=ErrorCategory.COMMAND_EXECUTION,
            severity=ErrorSeverity.MEDIUM,
            message="read raised TimeoutError"
        )

        assert handler.handle_error(context) is True
        assert len(handler.error_history) == 1

    def test_fatal_error_aborts(self):
        handler = ErrorHandler()

        context = ErrorContext(
            category=ErrorCategory.COMMAND_EXECUTION,
            severity=ErrorSeverity.FATAL,
            message="Fatal error"
        )

        assert handler.handle_error(context) is False

    @pytest.mark.parametrize("category,expected", [
        (ErrorCategory.CLUSTER_SETUP, False),
        (ErrorCategory.ADAPTER_MISMATCH, False),
        (ErrorCategory.CONVERGENCE, True),
        (ErrorCategory.FAULT_INJECTION, True),
    ])
    def test_recovery_by_category(self, category, expected):
        """Test continue/abort decisions per category"""
        handler = ErrorHandler()
        context = ErrorContext(category=category, severity=ErrorSeverity.MEDIUM, message="error")
        assert handler.handle_error(context) is expected

    def test_no_strategy_only_low_continues(self):
        handler = ErrorHandler()
        low = ErrorContext(category=ErrorCategory.CONFIGURATION, severity=ErrorSeverity.LOW, message="blip")
        high = ErrorContext(category=ErrorCategory.CONFIGURATION, severity=ErrorSeverity.HIGH, message="down")

        assert handler.handle_error(low) is True
        assert handler.handle_error(high) is False

    def test_high_severity_command_error_aborts(self):
        handler = ErrorHandler()
        context = ErrorContext(
            category=ErrorCategory.COMMAND_EXECUTION,
            severity=ErrorSeverity.HIGH,
            message="Operation failed"
        )
        assert handler._recover_command_execution(context) is False

    def test_retry_with_backoff_success_first_attempt(self):
        handler = ErrorHandler()
        mock_operation = Mock(return_value="PONG")

        success, result = handler.retry_with_backoff(
            operation=mock_operation,
            config=RetryConfig(max_attempts=3),
            error_category=ErrorCategory.CLUSTER_SETUP,
            operation_name="ping node_1"
        )

        assert success is True
        assert result == "PONG"
        assert mock_operation.call_count == 1

    @patch('model_fuzzer.fuzzer_engine.error_handler.time.sleep')
    def test_retry_with_backoff_success_after_retries(self, mock_sleep):
        """Test retry succeeds after some failures"""
        handler = ErrorHandler()
        mock_operation = Mock(side_effect=[Exception("Fail 1"), Exception("Fail 2"), "PONG"])

        success, result = handler.retry_with_backoff(
            operation=mock_operation,
            config=RetryConfig(max_attempts=3, initial_delay=0.1),
            error_category=ErrorCategory.CLUSTER_SETUP,
            operation_name="ping node_1"
        )

        assert success is True
        assert result == "PONG"
        assert mock_operation.call_count == 3
        assert mock_sleep.call_count == 2

    @patch('model_fuzzer.fuzzer_engine.error_handler.time.sleep')
    def test_retry_with_backoff_all_failures(self, mock_sleep):
        handler = ErrorHandler()
        mock_operation = Mock(side_effect=Exception("Always fails"))

        success, result = handler.retry_with_backoff(
            operation=mock_operation,
            config=RetryConfig(max_attempts=3, initial_delay=0.1),
            error_category=ErrorCategory.CLUSTER_SETUP,
            operation_name="ping node_1"
        )

        assert success is False
        assert result is None
        assert mock_operation.call_count == 3
        assert len(handler.error_history) == 4  # 3 attempts + 1 final error

    @patch('model_fuzzer.fuzzer_engine.error_handler.time.sleep')
    def test_exponential_backoff_delays(self, mock_sleep):
        handler = ErrorHandler()

        handler.retry_with_backoff(
            operation=Mock(side_effect=Exception("Fail")),
            config=RetryConfig(max_attempts=4, initial_delay=0.1, max_delay=0.3, jitter=False),
            error_category=ErrorCategory.CLUSTER_SETUP
        )

        delays = [c.args[0] for c in mock_sleep.call_args_list]
        assert delays == pytest.approx([0.1, 0.2, 0.3])

    def test_cleanup_after_failure(self):
        """Test faults are reset and nodes stopped"""
        handler = ErrorHandler()
        cluster = Mock()
        cluster.is_running.return_value = True
        fault_model = Mock()
        context = Mock()

        result = handler.cleanup_after_failure(cluster=cluster, fault_model=fault_model, context=context)

        assert result is True
        fault_model.reset.assert_called_once_with(context)
        cluster.stop_nodes.assert_called_once()

    def test_cleanup_after_failure_with_errors(self):
        """Test cleanup continues despite errors"""
        handler = ErrorHandler()
        cluster = Mock()
        cluster.is_running.return_value = True
        fault_model = Mock()
        fault_model.reset.side_effect = Exception("reset failed")

        result = handler.cleanup_after_failure(cluster=cluster, fault_model=fault_model, context=Mock())

        assert result is False
        cluster.stop_nodes.assert_called_once()
        assert handler.error_history[-1].category == ErrorCategory.RESOURCE_CLEANUP

    def test_cleanup_skips_stopped_cluster(self):
        handler = ErrorHandler()
        cluster = Mock()
        cluster.is_running.return_value = False

        assert handler.cleanup_after_failure(cluster=cluster) is True
        cluster.stop_nodes.assert_not_called()

    def test_get_error_summary(self):
        handler = ErrorHandler()
        handler.error_history.extend([
            ErrorContext(category=ErrorCategory.CLUSTER_SETUP, severity=ErrorSeverity.HIGH, message="Error 1"),
            ErrorContext(category=ErrorCategory.CLUSTER_SETUP, severity=ErrorSeverity.MEDIUM, message="Error 2"),
            ErrorContext(category=ErrorCategory.CONVERGENCE, severity=ErrorSeverity.LOW, message="Error 3"),
        ])

        summary = handler.get_error_summary()

        assert summary['total_errors'] == 3
        assert summary['by_category']['cluster_setup'] == 2
        assert summary['by_category']['convergence'] == 1
        assert summary['by_severity'] == {'high': 1, 'medium': 1, 'low': 1}
        assert len(summary['recent_errors']) == 3

    def test_clear_history(self):
        handler = ErrorHandler()
        handler.error_history.append(
            ErrorContext(category=ErrorCategory.CLUSTER_SETUP, severity=ErrorSeverity.HIGH, message="Error")
        )

        handler.clear_history()

        assert len(handler.error_history) == 0

    def test_error_log_includes_command_and_node(self, caplog):
        handler = ErrorHandler()
        handler.handle_error(ErrorContext(
            category=ErrorCategory.COMMAND_EXECUTION,
            severity=ErrorSeverity.MEDIUM,
            message="read raised",
            component="CommandExecutor",
            node="node_1@simulated",
            command="system:read('node_1', 'key_1')"
        ))

        assert "[CommandExecutor] [command_execution] read raised" in caplog.text
        assert "(node: node_1@simulated)" in caplog.text
