"""
Configuration loading - environment variables, YAML/JSON files and overrides

Precedence, lowest first: defaults, environment, configuration file,
explicit overrides (command line).
"""
import os
import json
import logging
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .error_handler import ConfigurationError
from ..models import FuzzerConfig, Scheduler

logger = logging.getLogger(__name__)


def load_config_file(config_path: str) -> Dict[str, Any]:
    """Load configuration from a YAML or JSON file"""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, 'r') as f:
        if path.suffix in ['.yaml', '.yml']:
            data = yaml.safe_load(f)
        elif path.suffix == '.json':
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return data


def config_from_env(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Options set through environment variables"""
    environ = os.environ if environ is None else environ
    options: Dict[str, Any] = {}

    for name, key in [
        ('SYSTEM_MODEL', 'system_model'),
        ('FAULT_MODEL', 'fault_model'),
        ('CLUSTER_BACKEND', 'cluster_backend'),
        ('SCHEDULER', 'scheduler'),
        ('LOG_DIR', 'log_dir'),
    ]:
        if environ.get(name):
            options[key] = environ[name]

    # Set means enabled, whatever the value
    if 'FAULT_INJECTION' in environ:
        options['fault_injection'] = True
    if 'MEMBERSHIP_CHANGES' in environ:
        options['membership_changes'] = True

    if environ.get('RESTART_NODES') == 'false':
        options['restart_nodes'] = False
    if environ.get('FULL_RESTART') == 'true':
        options['full_restart'] = True
    if environ.get('CLUSTER_NODES') == 'false':
        options['cluster_nodes'] = False
    if environ.get('PRECONDITION_DEBUG') == 'true':
        options['precondition_debug'] = True
    if environ.get('POSTCONDITION_DEBUG') == 'true':
        options['postcondition_debug'] = True

    for name, key in [('NUM_TESTS', 'num_tests'), ('SEED', 'seed'), ('MAX_COMMANDS', 'max_commands')]:
        if environ.get(name):
            try:
                options[key] = int(environ[name])
            except ValueError:
                raise ConfigurationError(f"{name} must be an integer, got {environ[name]!r}")

    return options


def build_config(
    file_config: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None
) -> FuzzerConfig:
    """Merge every configuration source into a validated FuzzerConfig"""
    options: Dict[str, Any] = {}
    options.update(config_from_env(environ))
    options.update(file_config or {})
    options.update({k: v for k, v in (overrides or {}).items() if v is not None})

    known = {f.name for f in fields(FuzzerConfig)}
    unknown = sorted(set(options) - known)
    if unknown:
        raise ConfigurationError(f"Unknown configuration options: {', '.join(unknown)}")

    if 'scheduler' in options and not isinstance(options['scheduler'], Scheduler):
        try:
            options['scheduler'] = Scheduler(options['scheduler'])
        except ValueError:
            valid = ', '.join(s.value for s in Scheduler)
            raise ConfigurationError(f"Unknown scheduler {options['scheduler']!r}, expected one of: {valid}")

    config = FuzzerConfig(**options)
    validate_config(config)
    return config


def validate_config(config: FuzzerConfig) -> None:
    """Fail fast on configuration no run could start with"""
    if not config.system_model:
        raise ConfigurationError("No system model specified (set SYSTEM_MODEL or --system-model)")
    if not isinstance(config.scheduler, Scheduler):
        raise ConfigurationError(f"Invalid scheduler: {config.scheduler!r}")
    for name in ('num_tests', 'max_commands', 'wait_retries', 'max_faults'):
        value = getattr(config, name)
        if not isinstance(value, int) or value < 1:
            raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
    if config.wait_delay < 0 or config.command_timeout <= 0:
        raise ConfigurationError("wait_delay must be >= 0 and command_timeout > 0")
    if config.max_shrinks < 0:
        raise ConfigurationError("max_shrinks must be >= 0")
    logger.debug(f"Configuration validated: {config.to_dict()}")
