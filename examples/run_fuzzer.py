#!/usr/bin/env python3
"""
Example script driving the Model Fuzzer from Python instead of the CLI

Install the package first: pip install -e .
"""
import sys
import argparse

from model_fuzzer.fuzzer_engine import DSLLoader
from model_fuzzer.main import ModelFuzzer
from model_fuzzer.models import FuzzerConfig, Scheduler


def run_property(system_model, fault_model, seed=None, export=None):
    """Fuzz a system model with faults and membership changes"""
    print("=" * 80)
    print(f"Fuzzing {system_model} under {fault_model} faults")
    print("=" * 80)

    config = FuzzerConfig(
        system_model=system_model,
        fault_model=fault_model,
        fault_injection=True,
        membership_changes=fault_model == "crash",
        scheduler=Scheduler.FINITE_FAULT,
        num_tests=25,
    )
    fuzzer = ModelFuzzer(config)
    result = fuzzer.run_property(seed=seed)

    print(f"Seed: {result.seed}")
    print(f"Success: {result.success}")
    print(f"Tests: {result.tests_run}/{result.num_tests}")
    print(f"Duration: {result.duration:.2f}s")
    for name, count in result.command_names.most_common():
        print(f"  {name}: {count}")

    if result.counterexample:
        print(f"\nCounterexample after {result.shrink_steps} shrink steps:")
        for command in result.counterexample:
            print(f"  {command}")
        if export and fuzzer.export_counterexample(result, export):
            print(f"\nSaved to {export}, replay with: python run_fuzzer.py replay {export} {system_model}")

    return result


def replay(dsl_file, system_model):
    """Replay a saved counterexample once"""
    print("=" * 80)
    print(f"Replaying {dsl_file}")
    print("=" * 80)

    commands, metadata = DSLLoader.load_commands(dsl_file)
    options = dict(metadata.get('config', {}))
    options['system_model'] = system_model
    options['scheduler'] = Scheduler(options.get('scheduler', Scheduler.DEFAULT.value))
    fuzzer = ModelFuzzer(FuzzerConfig(**options))

    result = fuzzer.replay(commands)
    for outcome in result.history:
        status = "OK" if outcome.passed else "FAIL"
        print(f"  [{status}] {outcome.command} -> {outcome.response}")

    if result.error_message:
        print(f"\nError: {result.error_message}")
    return result


def main():
    parser = argparse.ArgumentParser(
        description="Model Fuzzer example",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Fuzz the replicated store under crashes
  python run_fuzzer.py property replicated_kv --seed 42

  # Fuzz under partitions and keep the counterexample
  python run_fuzzer.py property linearizable_kv --fault-model partition --export ce.yaml

  # Replay a saved counterexample
  python run_fuzzer.py replay ce.yaml linearizable_kv
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    property_parser = subparsers.add_parser('property', help='Run the property')
    property_parser.add_argument('system_model', help='Registered system model')
    property_parser.add_argument('--fault-model', default='crash', help='crash or partition')
    property_parser.add_argument('--seed', type=int, help='Seed for reproducibility')
    property_parser.add_argument('--export', help='Where to save a counterexample')

    replay_parser = subparsers.add_parser('replay', help='Replay a saved counterexample')
    replay_parser.add_argument('file', help='Path to DSL YAML file')
    replay_parser.add_argument('system_model', help='Registered system model')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    if args.command == 'property':
        result = run_property(args.system_model, args.fault_model, seed=args.seed, export=args.export)
    else:
        result = replay(args.file, args.system_model)
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
