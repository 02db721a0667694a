"""
Fuzzer Engine - Generates, transforms, executes and shrinks command sequences
"""
from .command_executor import CommandExecutor
from .command_generator import CommandGenerator
from .config import build_config, config_from_env, load_config_file, validate_config
from .dsl_utils import DSLLoader, DSLValidator
from .error_handler import (
    ErrorHandler, FuzzerError, ConfigurationError, SetupError, AdapterMismatchError
)
from .fuzzer_engine import FuzzerEngine
from .property_model import PropertyModel
from .run_context import RunContext, UnknownNodeError
from .sequence_transformer import SequenceTransformer
from .shrinker import Shrinker
from .test_logger import FuzzerLogger
from .trace import LoggingTraceRecorder, NullTrace

__all__ = [
    'FuzzerEngine',
    'PropertyModel',
    'CommandGenerator',
    'SequenceTransformer',
    'CommandExecutor',
    'Shrinker',
    'RunContext',
    'UnknownNodeError',
    'FuzzerLogger',
    'LoggingTraceRecorder',
    'NullTrace',
    'DSLLoader',
    'DSLValidator',
    'ErrorHandler',
    'FuzzerError',
    'ConfigurationError',
    'SetupError',
    'AdapterMismatchError',
    'build_config',
    'config_from_env',
    'load_config_file',
    'validate_config',
]
