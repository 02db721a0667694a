#!/usr/bin/env python3
"""
Command-line interface for the Model Fuzzer
Provides commands for running the property, replaying saved sequences and validating them.
"""
import sys
import argparse
import json
import yaml
import traceback
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional
from datetime import datetime
from .main import ModelFuzzer
from .fuzzer_engine import DSLLoader, DSLValidator, ConfigurationError, build_config, load_config_file
from .models import FuzzerConfig, PropertyResult, RunResult, Scheduler


class FuzzerCLI:
    """Command-line interface for the Model Fuzzer"""

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        self.environ = environ
        self.config: Dict[str, Any] = {}

    def build_config(self, args, file_config: Optional[Dict[str, Any]] = None) -> FuzzerConfig:
        """Merge environment, configuration file and command-line options"""
        if getattr(args, 'config', None):
            self.config = load_config_file(args.config)
            print(f"Loaded configuration from {args.config}")
        elif file_config:
            self.config = dict(file_config)
        return build_config(self.config, self.environ, self._overrides(args))

    def _overrides(self, args) -> Dict[str, Any]:
        overrides = {}
        for key in ('system_model', 'fault_model', 'cluster_backend', 'scheduler', 'fault_injection',
                    'membership_changes', 'restart_nodes', 'full_restart', 'num_tests', 'max_commands',
                    'seed', 'log_dir'):
            value = getattr(args, key, None)
            if value is not None:
                overrides[key] = value
        if getattr(args, 'node', None):
            overrides['node_addresses'] = parse_node_addresses(args.node)
        return overrides

    def run_property(self, args) -> int:
        """Run the property over randomized test cases"""
        self._print_header("Property Run")

        try:
            config = self.build_config(args)
        except (ConfigurationError, ValueError, FileNotFoundError) as e:
            print(f"Error: {e}")
            print(f"\nConfig file must be YAML (.yaml, .yml) or JSON (.json)")
            print(f"Example: model-fuzzer run --system-model linearizable_kv --seed 42")
            return 1

        print(f"System model: {config.system_model}")
        print(f"Fault model: {config.fault_model} (injection {'on' if config.fault_injection else 'off'})")
        print(f"Scheduler: {config.scheduler.value}")
        print(f"Seed: {config.seed} (reproducible)" if config.seed is not None else "Seed: Random")
        if args.export_dsl:
            print(f"DSL Export: {args.export_dsl}")
        print()

        try:
            fuzzer = ModelFuzzer(config)
        except ConfigurationError as e:
            print(f"Error: {e}")
            print("\nSee available models: model-fuzzer list-models")
            return 1
        result = fuzzer.run_property()

        if args.verbose:
            self._print_detailed_result(result)
        else:
            self._print_summary_result(result)

        if args.output:
            self._save_results(result.to_dict(), args.output, args.format)

        if args.export_dsl:
            if fuzzer.export_counterexample(result, args.export_dsl):
                print(f"\nCounterexample exported to DSL: {args.export_dsl}")
            else:
                print("\nNo counterexample to export, the property passed")

        return 0 if result.success else 1

    def replay(self, args) -> int:
        """Replay a saved command sequence"""
        self._print_header(f"Replay: {args.file}")

        if not Path(args.file).exists():
            print(f"Error: DSL file not found: {args.file}")
            print(f"\nMake sure the file path is correct.")
            return 1

        try:
            commands, metadata = DSLLoader.load_commands(args.file)
            config = self.build_config(args, metadata.get('config'))
        except (ConfigurationError, ValueError) as e:
            print(f"Error: {e}")
            print(f"\nTry validating the file first: model-fuzzer validate {args.file}")
            return 1

        print(f"Loaded {len(commands)} commands from {args.file}")
        try:
            fuzzer = ModelFuzzer(config)
        except ConfigurationError as e:
            print(f"Error: {e}")
            return 1
        result = fuzzer.replay(commands)
        self._print_run(result, args.verbose)

        if args.output:
            self._save_results(result.to_dict(), args.output, args.format)

        return 0 if result.success else 1

    def validate(self, args) -> int:
        """Validate a saved command sequence"""
        self._print_header(f"Validating DSL: {args.file}")

        dsl_path = Path(args.file)
        if not dsl_path.exists():
            print(f"Error: DSL file not found: {args.file}")
            return 1

        try:
            data = yaml.safe_load(dsl_path.read_text())
        except yaml.YAMLError as e:
            print(f"\nError: Invalid YAML syntax: {e}")
            return 1

        errors = DSLValidator.validate_structure(data)
        if errors:
            print("Validation failed:")
            for error in errors:
                print(f"  - {error}")
            return 1
        print("DSL structure is valid")

        commands, metadata = DSLLoader.load_from_string(dsl_path.read_text())
        if args.verbose:
            print("\nCommands:")
            for command in commands:
                print(f"  {command}")

        try:
            config = self.build_config(args, metadata.get('config'))
        except ConfigurationError as e:
            print(f"\nSkipping precondition check: {e}")
            return 0

        from .fuzzer_engine import PropertyModel, registry
        try:
            model = PropertyModel(
                registry.create_system_model(config.system_model, config),
                registry.create_fault_model(config.fault_model, config),
                config
            )
        except ConfigurationError as e:
            print(f"\nError: {e}")
            return 1
        if not model.is_valid(commands):
            print(f"\nError: Sequence violates a precondition for {config.system_model}")
            return 1

        print(f"\nSequence of {len(commands)} commands is valid for {config.system_model}!")
        return 0

    def list_models(self, args) -> int:
        from .fuzzer_engine import registry
        for kind, names in registry.available().items():
            print(f"{kind}:")
            for name in names:
                print(f"  {name}")
        return 0

    def _print_header(self, title: str):
        """Print formatted header"""
        print()
        print("=" * 80)
        print(title)
        print("=" * 80)
        print()

    def _print_summary_result(self, result: PropertyResult):
        """Print summary of a property result"""
        status = "PASSED" if result.success else "FAILED"

        print(f"\nStatus: {status}")
        print(f"Duration: {result.duration:.2f}s")
        print(f"Tests: {result.tests_run}/{result.num_tests}")
        print(f"Seed: {result.seed} (use to reproduce)")

        if result.counterexample is not None:
            print(f"\nCounterexample ({len(result.counterexample)} commands, "
                  f"shrunk in {result.shrink_steps} steps):")
            for command in result.counterexample:
                print(f"  {command}")
        if result.failing_run and result.failing_run.error_message:
            print(f"Error: {result.failing_run.error_message}")

    def _print_detailed_result(self, result: PropertyResult):
        """Print the command histogram and the failing run when --verbose is specified"""
        self._print_summary_result(result)

        if result.command_names:
            print("\nCommand distribution:")
            for name, count in result.command_names.most_common():
                print(f"  {count:6d}  {name}")

        if result.failing_run:
            print("\nFailing run:")
            self._print_history(result.failing_run)

    def _print_run(self, result: RunResult, verbose: bool):
        print(f"\nStatus: {'PASSED' if result.success else 'FAILED'}")
        print(f"Duration: {result.duration:.2f}s")
        if result.error_message:
            print(f"Error: {result.error_message}")
        if verbose or not result.success:
            self._print_history(result)

    def _print_history(self, result: RunResult):
        for outcome in result.history:
            status = "[PASS]" if outcome.passed else "[FAIL]"
            print(f"  {status} {outcome.command} -> {outcome.response}")
            if outcome.error:
                print(f"    Error: {outcome.error}")

    def _save_results(self, data: Dict[str, Any], output_path: str, format: str):
        """Save results to file"""
        try:
            output = Path(output_path)
            output.parent.mkdir(parents=True, exist_ok=True)

            data = {'timestamp': datetime.now().isoformat(), **data}
            with open(output, 'w') as f:
                if format == 'json':
                    json.dump(data, f, indent=2, default=str)
                elif format == 'yaml':
                    yaml.safe_dump(json.loads(json.dumps(data, default=str)), f, default_flow_style=False)

            print(f"\nResults saved to {output_path}")

        except OSError as e:
            print(f"\nFailed to save results: {e}")


def parse_node_addresses(values: List[str]) -> Dict[str, str]:
    """Parse repeated ``name=host:port`` options"""
    addresses = {}
    for value in values:
        name, sep, address = value.partition('=')
        if not sep or not name or not address:
            raise ConfigurationError(f"Invalid node address '{value}', expected name=host:port")
        addresses[name] = address
    return addresses


def _add_config_arguments(parser: argparse.ArgumentParser):
    parser.add_argument('--config', type=str, help='Path to configuration file (YAML or JSON)')
    parser.add_argument('--system-model', dest='system_model', help='System model to test')
    parser.add_argument('--fault-model', dest='fault_model', help='Fault model (default: crash)')
    parser.add_argument('--cluster-backend', dest='cluster_backend', help='Cluster backend (default: simulated)')
    parser.add_argument(
        '--node',
        action='append',
        metavar='NAME=HOST:PORT',
        help='Address of a node for the valkey backend (repeatable)'
    )
    parser.add_argument('--log-dir', dest='log_dir', help='Directory for property logs and reports')


def _add_output_arguments(parser: argparse.ArgumentParser):
    parser.add_argument('--output', type=str, help='Path to save results')
    parser.add_argument(
        '--format',
        choices=['json', 'yaml'],
        default='json',
        help='Output format for results (default: json)'
    )
    parser.add_argument('--verbose', action='store_true', help='Enable verbose output')


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI"""
    parser = argparse.ArgumentParser(
        prog='model-fuzzer',
        description='Model Fuzzer - Model-based fault injection testing for clustered systems',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the property against the simulated cluster
  model-fuzzer run --system-model linearizable_kv

  # Run with fault injection and a fixed seed
  model-fuzzer run --system-model replicated_kv --fault-injection --seed 42

  # Fault injection with a final heal, exporting any counterexample
  model-fuzzer run --system-model replicated_kv --fault-injection --scheduler finite_fault --export-dsl ce.yaml

  # Replay a saved counterexample
  model-fuzzer replay ce.yaml --verbose

  # Validate a saved sequence
  model-fuzzer validate ce.yaml

  # Available system models, fault models and cluster backends
  model-fuzzer list-models
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version='Model Fuzzer 0.1.0'
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    run_parser = subparsers.add_parser('run', help='Run the property over randomized test cases')
    _add_config_arguments(run_parser)
    run_parser.add_argument(
        '--scheduler',
        choices=[s.value for s in Scheduler],
        help='Sequence transformation (default: default)'
    )
    run_parser.add_argument(
        '--fault-injection',
        dest='fault_injection',
        action='store_true',
        default=None,
        help='Generate fault commands'
    )
    run_parser.add_argument(
        '--membership-changes',
        dest='membership_changes',
        action='store_true',
        default=None,
        help='Generate join and leave commands'
    )
    run_parser.add_argument(
        '--no-restart-nodes',
        dest='restart_nodes',
        action='store_false',
        default=None,
        help='Reuse nodes between test cases'
    )
    run_parser.add_argument(
        '--full-restart',
        dest='full_restart',
        action='store_true',
        default=None,
        help='Recluster reused nodes before each test case'
    )
    run_parser.add_argument('--num-tests', dest='num_tests', type=int, help='Number of test cases (default: 100)')
    run_parser.add_argument('--max-commands', dest='max_commands', type=int, help='Maximum generated sequence length')
    run_parser.add_argument('--seed', type=int, help='Seed for reproducibility')
    run_parser.add_argument(
        '--export-dsl',
        type=str,
        metavar='FILE',
        help='Export the shrunk counterexample to a DSL YAML file'
    )
    _add_output_arguments(run_parser)

    replay_parser = subparsers.add_parser('replay', help='Replay a saved command sequence')
    replay_parser.add_argument('file', help='Path to DSL YAML file')
    _add_config_arguments(replay_parser)
    _add_output_arguments(replay_parser)

    validate_parser = subparsers.add_parser('validate', help='Validate a saved command sequence')
    validate_parser.add_argument('file', help='Path to DSL YAML file')
    _add_config_arguments(validate_parser)
    validate_parser.add_argument('--verbose', action='store_true', help='Enable verbose output')

    subparsers.add_parser('list-models', help='List registered models and cluster backends')

    return parser


def main(argv: Optional[List[str]] = None, environ: Optional[Dict[str, str]] = None):
    """Main entry point for CLI"""

    logging.basicConfig(
        level=logging.INFO,
        format='%(levelname)-5s | %(filename)s:%(lineno)-3d | %(message)s',
        handlers=[logging.StreamHandler()]
    )

    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        print("Error: No command specified\n")
        parser.print_help()
        print("\nCommon commands:")
        print("  model-fuzzer run --system-model linearizable_kv   # Run the property")
        print("  model-fuzzer replay <file.yaml>                   # Replay a counterexample")
        print("  model-fuzzer validate <file.yaml>                 # Validate a saved sequence")
        return 1

    if getattr(args, 'verbose', False):
        logging.getLogger().setLevel(logging.DEBUG)

    cli = FuzzerCLI(environ)

    try:
        if args.command == 'run':
            return cli.run_property(args)
        elif args.command == 'replay':
            return cli.replay(args)
        elif args.command == 'validate':
            return cli.validate(args)
        elif args.command == 'list-models':
            return cli.list_models(args)
    except KeyboardInterrupt:
        print("\n\nModel Fuzzer process was interrupted by user")
        return 130
    except Exception as e:
        print(f"\nUnexpected error: {e}")
        if hasattr(args, 'verbose') and args.verbose:
            traceback.print_exc()
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
