from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import numpy as np

from .driver import Checkpoint
from .mealy import MealyMachine

Equivalence = Callable[[MealyMachine, MealyMachine], bool]


def _equivalent(hypothesis: MealyMachine, reference: MealyMachine) -> bool:
  return hypothesis.equivalent_to(reference)


@dataclass
class LifetimeReport:
  query_counts: List[int]
  lifetimes: List[int]
  correct: List[bool]
  correct_query_count: int
  total_budget: int

  @property
  def ratio(self) -> float:
    return self.correct_query_count / self.total_budget

  def to_dict(self) -> dict:
    return {
        "query_counts": list(self.query_counts),
        "lifetimes": list(self.lifetimes),
        "correct": list(self.correct),
        "correct_query_count": self.correct_query_count,
        "total_budget": self.total_budget,
        "ratio": self.ratio,
    }


class LifetimeEvaluator:
  """Scores a stream of checkpointed hypotheses against a reference model.

  A checkpoint lives from its own query count until the next checkpoint (the
  last one until ``total_budget``); the lifetimes of checkpoints equivalent to
  the reference are summed and reported as a fraction of the budget.
  """

  def __init__(self, reference: MealyMachine, equivalence: Optional[Equivalence] = None):
    self.reference = reference
    self.equivalence = equivalence or _equivalent

  @staticmethod
  def lifetimes(query_counts: Sequence[int], total_budget: int) -> np.ndarray:
    counts = np.asarray(query_counts, dtype=np.int64)
    if counts.size == 0:
      raise ValueError("At least one checkpoint is required")
    if counts[0] < 0:
      raise ValueError("Checkpoint query counts must be non-negative")
    if np.any(np.diff(counts) <= 0):
      raise ValueError("Checkpoint query counts must be strictly increasing")
    if total_budget < counts[-1]:
      raise ValueError(f"Total budget {total_budget} is below the last checkpoint {int(counts[-1])}")
    return np.diff(np.append(counts, total_budget))

  def evaluate(self, checkpoints: Sequence[Checkpoint], total_budget: int) -> LifetimeReport:
    if total_budget <= 0:
      raise ValueError("Total budget must be positive")
    query_counts = [checkpoint.query_count for checkpoint in checkpoints]
    lifetimes = self.lifetimes(query_counts, total_budget)
    correct = np.array([self.equivalence(checkpoint.hypothesis, self.reference) for checkpoint in checkpoints], dtype=bool)
    return LifetimeReport(
        query_counts=query_counts,
        lifetimes=[int(value) for value in lifetimes],
        correct=[bool(value) for value in correct],
        correct_query_count=int(lifetimes[correct].sum()),
        total_budget=int(total_budget),
    )
