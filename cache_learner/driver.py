from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from .alphabet import Alphabet
from .equivalence import Counterexample, EquivalenceOracle
from .errors import NonConvergence
from .lstar import Learner
from .mealy import MealyMachine

logger = logging.getLogger(__name__)


class DriverState(enum.Enum):
  INIT = "init"
  LEARNING = "learning"
  EQUIVALENCE_TEST = "equivalence_test"
  REFINE = "refine"
  DONE = "done"


class Termination(enum.Enum):
  SIZE_BUDGET = "size_budget"
  QUERY_BUDGET = "query_budget"
  NO_COUNTEREXAMPLE = "no_counterexample"


@dataclass(frozen=True)
class Checkpoint:
  query_count: int
  hypothesis: MealyMachine


@dataclass
class LearningResult:
  hypothesis: MealyMachine
  termination: Termination
  rounds: int
  refinements: int
  no_effect_refinements: int
  checkpoints: List[Checkpoint] = field(default_factory=list)
  counterexamples: List[Counterexample] = field(default_factory=list)


class LearnerDriver:
  """Counterexample-guided refinement loop around an active learner.

  Each round reads the hypothesis and stops if it reached ``max_hypothesis_size``
  or if ``query_budget`` queries have been spent. Otherwise the equivalence
  oracle (usually an OracleChain of cache consistency, random and structural
  search) is asked for a counterexample, which is handed to the learner. A round
  without any counterexample accepts the hypothesis.

  Checkpoints are only recorded at query counts within the budget.
  """

  def __init__(
      self,
      learner: Learner,
      alphabet: Alphabet,
      equivalence_oracle: EquivalenceOracle,
      max_hypothesis_size: int = 2**31 - 1,
      max_no_effect_rounds: int = 8,
      query_count: Callable[[], int] = lambda: 0,
      query_budget: Optional[int] = None,
      temp_model_path: Optional[Path] = None,
  ):
    if max_no_effect_rounds < 1:
      raise ValueError("max_no_effect_rounds must be >= 1")
    if query_budget is not None and query_budget < 1:
      raise ValueError("query_budget must be >= 1")
    self.learner = learner
    self.alphabet = alphabet
    self.equivalence_oracle = equivalence_oracle
    self.max_hypothesis_size = max_hypothesis_size
    self.max_no_effect_rounds = max_no_effect_rounds
    self.query_count = query_count
    self.query_budget = query_budget
    self.temp_model_path = temp_model_path
    self.state = DriverState.INIT
    self.checkpoints: List[Checkpoint] = []

  def find_counterexample(self, hypothesis: MealyMachine) -> Optional[Counterexample]:
    return self.equivalence_oracle.find_counterexample(hypothesis, self.alphabet)

  def _budget_spent(self, query_count: int) -> bool:
    return self.query_budget is not None and query_count >= self.query_budget

  def _record(self, hypothesis: MealyMachine, query_count: int) -> None:
    if self.query_budget is not None and query_count > self.query_budget:
      return
    if self.checkpoints and self.checkpoints[-1].hypothesis is hypothesis:
      return
    checkpoint = Checkpoint(query_count=query_count, hypothesis=hypothesis)
    if self.checkpoints and self.checkpoints[-1].query_count == checkpoint.query_count:
      self.checkpoints[-1] = checkpoint
    else:
      self.checkpoints.append(checkpoint)

  def _write_temp_model(self, hypothesis: MealyMachine) -> None:
    if self.temp_model_path is None:
      return
    try:
      with self.temp_model_path.open("w", encoding="utf-8") as handle:
        hypothesis.write_dot(handle)
    except OSError as exc:
      logger.warning("could not write partial model to %s: %s", self.temp_model_path, exc)

  def run(self) -> LearningResult:
    self.state = DriverState.INIT
    self.checkpoints = []
    counterexamples: List[Counterexample] = []
    rounds = refinements = no_effect_total = no_effect_streak = 0

    self.learner.start_learning()
    self.state = DriverState.LEARNING
    while True:
      hypothesis = self.learner.get_hypothesis_model()
      query_count = self.query_count()
      self._record(hypothesis, query_count)
      logger.info("--> Hypothesis: %d states", hypothesis.size())
      if hypothesis.size() >= self.max_hypothesis_size:
        termination = Termination.SIZE_BUDGET
        break
      if self._budget_spent(query_count):
        logger.info("query budget of %d spent after %d queries", self.query_budget, query_count)
        termination = Termination.QUERY_BUDGET
        break
      self._write_temp_model(hypothesis)

      self.state = DriverState.EQUIVALENCE_TEST
      rounds += 1
      counterexample = self.find_counterexample(hypothesis)
      logger.info("ce : %s", counterexample)
      if counterexample is None:
        termination = Termination.NO_COUNTEREXAMPLE
        break

      self.state = DriverState.REFINE
      counterexamples.append(counterexample)
      if self.learner.refine_hypothesis(counterexample):
        refinements += 1
        no_effect_streak = 0
      else:
        no_effect_total += 1
        no_effect_streak += 1
        logger.warning("No refinement effected by counterexample %s", counterexample)
        if no_effect_streak >= self.max_no_effect_rounds:
          self.state = DriverState.DONE
          raise NonConvergence(no_effect_streak, hypothesis)
      self.state = DriverState.LEARNING

    self.state = DriverState.DONE
    return LearningResult(
        hypothesis=hypothesis,
        termination=termination,
        rounds=rounds,
        refinements=refinements,
        no_effect_refinements=no_effect_total,
        checkpoints=list(self.checkpoints),
        counterexamples=counterexamples,
    )
