"""
Shrinker - Minimizes a failing command sequence

Works on the generated sequence before transformation. Each candidate is
re-transformed with the failing case's seed and executed again, so the
resolution command chosen by the transformer stays the same.
"""
import logging
import random
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .property_model import PropertyModel
from .sequence_transformer import SequenceTransformer, renumber
from ..models import Command, RunResult

logger = logging.getLogger(__name__)


@dataclass
class ShrinkResult:
    commands: List[Command]  # Minimal generated sequence
    transformed: List[Command]  # What was actually executed
    run: Optional[RunResult]  # Failing run of the minimal sequence
    steps: int  # Successful reductions
    attempts: int


class Shrinker:
    """Removes chunks of commands while the sequence keeps failing"""

    def __init__(self, model: PropertyModel, transformer: SequenceTransformer,
                 run: Callable[[List[Command]], RunResult], max_shrinks: int = 200):
        self.model = model
        self.transformer = transformer
        self.run = run
        self.max_shrinks = max_shrinks

    def _transform(self, commands: Sequence[Command], case_seed: int) -> List[Command]:
        return self.transformer.transform(commands, random.Random(case_seed))

    def _failing_run(self, commands: List[Command], case_seed: int) -> Optional[RunResult]:
        """The failing run of a candidate, or None if it is illegal or passes"""
        if not self.model.is_valid(commands):
            return None
        transformed = self._transform(commands, case_seed)
        if not self.model.is_valid(transformed):
            return None
        result = self.run(transformed)
        return None if result.success else result

    def shrink(self, commands: Sequence[Command], case_seed: int,
               failing_run: Optional[RunResult] = None) -> ShrinkResult:
        current = renumber(commands)
        best_run = failing_run
        steps = 0
        attempts = 0
        chunk = max(1, len(current) // 2)

        while attempts < self.max_shrinks:
            reduced = False
            i = 0
            while i < len(current) and attempts < self.max_shrinks:
                candidate = renumber(current[:i] + current[i + chunk:])
                if not candidate:
                    i += chunk
                    continue
                attempts += 1
                result = self._failing_run(candidate, case_seed)
                if result is not None:
                    current = candidate
                    best_run = result
                    steps += 1
                    reduced = True
                else:
                    i += chunk
            if not reduced:
                if chunk == 1:
                    break
                chunk = max(1, chunk // 2)

        logger.info(f"Shrunk {len(commands)} commands to {len(current)} in {steps} steps ({attempts} attempts)")
        return ShrinkResult(
            commands=current,
            transformed=self._transform(current, case_seed),
            run=best_run,
            steps=steps,
            attempts=attempts
        )
