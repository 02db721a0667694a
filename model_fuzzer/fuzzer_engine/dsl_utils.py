"""
DSL Utilities - Saving and loading command sequences as YAML
"""
import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..models import Command


class DSLLoader:
    """Reads and writes command sequences so a counterexample can be replayed exactly"""

    @staticmethod
    def save_commands(file_path: Union[str, Path], commands: List[Command],
                      metadata: Optional[Dict[str, Any]] = None) -> None:
        """Save a command sequence, with optional run metadata, as a YAML file."""
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        dsl_dict = {
            'metadata': dict(metadata or {}),
            'commands': [command.to_dict() for command in commands]
        }

        with open(file_path, 'w') as f:
            yaml.safe_dump(dsl_dict, f, default_flow_style=False, sort_keys=False)

    @staticmethod
    def load_commands(file_path: Union[str, Path]) -> Tuple[List[Command], Dict[str, Any]]:
        """Load a command sequence and its metadata from a YAML file."""
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"DSL file not found: {file_path}")

        try:
            with open(file_path, 'r') as f:
                config_text = f.read()
        except OSError as e:
            raise ValueError(f"Error loading DSL file {file_path}: {e}")

        return DSLLoader.load_from_string(config_text)

    @staticmethod
    def load_from_string(config_text: str) -> Tuple[List[Command], Dict[str, Any]]:
        """Parse a command sequence from a YAML string."""
        try:
            data = yaml.safe_load(config_text)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML syntax: {e}")

        errors = DSLValidator.validate_structure(data)
        if errors:
            raise ValueError("Invalid command sequence: " + "; ".join(errors))

        commands = [Command.from_dict(entry) for entry in data['commands']]
        return commands, data.get('metadata') or {}


class DSLValidator:
    """Validator for saved command sequences with detailed error reporting"""

    VALID_TARGETS = ('cluster', 'system', 'fault', 'engine')

    @staticmethod
    def validate_structure(config_dict: Any) -> list:
        """
        Validate the structure of a saved sequence. Returns a list of errors,
        empty when the sequence is well formed.
        """
        if not isinstance(config_dict, dict):
            return ["Top level must be a mapping"]

        errors = []
        if 'commands' not in config_dict:
            errors.append("Missing required field: commands")
            return errors

        commands = config_dict['commands']
        if not isinstance(commands, list):
            errors.append("commands: Must be a list")
            return errors

        for i, entry in enumerate(commands):
            if not isinstance(entry, dict):
                errors.append(f"commands[{i}]: Must be a dictionary")
                continue
            for required in ('var', 'target', 'function'):
                if required not in entry:
                    errors.append(f"commands[{i}]: Missing required field '{required}'")
            if 'var' in entry and (not isinstance(entry['var'], int) or entry['var'] < 1):
                errors.append(f"commands[{i}].var: Must be a positive integer")
            if 'target' in entry and entry['target'] not in DSLValidator.VALID_TARGETS:
                errors.append(f"commands[{i}].target: Invalid target '{entry['target']}'")
            if 'args' in entry and entry['args'] is not None and not isinstance(entry['args'], list):
                errors.append(f"commands[{i}].args: Must be a list")

        if 'metadata' in config_dict and config_dict['metadata'] is not None \
                and not isinstance(config_dict['metadata'], dict):
            errors.append("metadata: Must be a dictionary")

        return errors
