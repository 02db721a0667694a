"""
Main entry point for the Model Fuzzer
"""
from pathlib import Path
from typing import List, Optional, Union

from .fuzzer_engine import FuzzerEngine, DSLLoader
from .models import Command, FuzzerConfig, PropertyResult, RunResult


class ModelFuzzer:
    """Main orchestrator for the Model Fuzzer system"""

    def __init__(self, config: FuzzerConfig, **adapters):
        """
        Initialize the fuzzer with the main fuzzer engine. Keyword arguments
        (system_model, fault_model, cluster, trace) replace registry adapters.
        """
        self.config = config
        self.fuzzer_engine = FuzzerEngine(config, **adapters)
        self.last_result: Optional[PropertyResult] = None

    def run_property(self, num_tests: int = None, seed: int = None) -> PropertyResult:
        """
        Run the property over randomized test cases.
        """
        self.last_result = self.fuzzer_engine.run_property(num_tests=num_tests, seed=seed)
        return self.last_result

    def replay(self, commands: List[Command]) -> RunResult:
        """
        Run a saved command sequence once.
        """
        return self.fuzzer_engine.replay(commands)

    def export_counterexample(self, result: PropertyResult, file_path: Union[str, Path]) -> bool:
        """
        Save the shrunk counterexample of a failed property for replay.
        Returns False when there is nothing to export.
        """
        if result.counterexample is None:
            return False
        metadata = {
            'seed': result.seed,
            'shrink_steps': result.shrink_steps,
            'config': self.config.to_dict(),
        }
        DSLLoader.save_commands(file_path, result.counterexample, metadata)
        return True

    def generate_report(self, results: List[PropertyResult]) -> str:
        return self.fuzzer_engine.logger.generate_report(results)
