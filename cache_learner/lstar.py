"""Observation-table learners for Mealy machines.

The three variants share one table and differ only in how a counterexample is
folded back in: every prefix into the access rows (LSTAR), every suffix into the
distinguishing columns (MP), or a single suffix found by binary search (RS).
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Tuple

from .alphabet import Alphabet, Query, Word
from .config import LearnerKind
from .equivalence import Counterexample
from .errors import ConfigError
from .mealy import MealyMachine
from .oracle import MembershipOracle

logger = logging.getLogger(__name__)

Row = Tuple[Word, ...]


class Learner:
  """Active learning algorithm driven by LearnerDriver."""

  def start_learning(self) -> None:  # pragma: no cover - interface
    raise NotImplementedError

  def refine_hypothesis(self, counterexample: Counterexample) -> bool:  # pragma: no cover - interface
    raise NotImplementedError

  def get_hypothesis_model(self) -> MealyMachine:  # pragma: no cover - interface
    raise NotImplementedError


class ObservationTableLearner(Learner):

  def __init__(self, alphabet: Alphabet, oracle: MembershipOracle):
    self.alphabet = alphabet
    self.oracle = oracle
    self.short_prefixes: List[Word] = [()]
    self.suffixes: List[Word] = [(symbol,) for symbol in alphabet]
    self._cells: Dict[Word, Dict[Word, Word]] = {}
    self._hypothesis: Optional[MealyMachine] = None
    self._access: Dict[int, Word] = {}

  # -- table maintenance --------------------------------------------------

  def _rows(self) -> List[Word]:
    rows = list(self.short_prefixes)
    members = set(rows)
    for prefix in self.short_prefixes:
      for symbol in self.alphabet:
        extended = prefix + (symbol,)
        if extended not in members:
          members.add(extended)
          rows.append(extended)
    return rows

  def _fill(self) -> None:
    pending: List[Query] = []
    for prefix in self._rows():
      cells = self._cells.setdefault(prefix, {})
      for suffix in self.suffixes:
        if suffix not in cells:
          pending.append(Query(prefix, suffix))
    if not pending:
      return
    answers = self.oracle.process_queries(pending)
    for query, answer in zip(pending, answers):
      self._cells[query.prefix][query.suffix] = answer

  def row(self, prefix: Word) -> Row:
    cells = self._cells[prefix]
    return tuple(cells[suffix] for suffix in self.suffixes)

  def _find_unclosed(self) -> Optional[Word]:
    known = {self.row(prefix) for prefix in self.short_prefixes}
    for prefix in self.short_prefixes:
      for symbol in self.alphabet:
        extended = prefix + (symbol,)
        if self.row(extended) not in known:
          return extended
    return None

  def _find_inconsistency(self) -> Optional[Word]:
    for idx, first in enumerate(self.short_prefixes):
      for second in self.short_prefixes[idx + 1:]:
        if self.row(first) != self.row(second):
          continue
        for symbol in self.alphabet:
          for suffix in self.suffixes:
            left = self._cells[first + (symbol,)][suffix]
            right = self._cells[second + (symbol,)][suffix]
            if left != right:
              return (symbol,) + suffix
    return None

  def _stabilize(self) -> None:
    while True:
      self._fill()
      unclosed = self._find_unclosed()
      if unclosed is not None:
        self.short_prefixes.append(unclosed)
        continue
      distinguishing = self._find_inconsistency()
      if distinguishing is not None:
        self.suffixes.append(distinguishing)
        continue
      break
    self._hypothesis = self._build_hypothesis()

  def _build_hypothesis(self) -> MealyMachine:
    state_of: Dict[Row, int] = {}
    representatives: List[Word] = []
    for prefix in self.short_prefixes:
      signature = self.row(prefix)
      if signature not in state_of:
        state_of[signature] = len(representatives)
        representatives.append(prefix)

    machine = MealyMachine(self.alphabet, initial=state_of[self.row(())])
    for state, prefix in enumerate(representatives):
      for symbol in self.alphabet:
        output = self._cells[prefix][(symbol,)][0]
        target = state_of[self.row(prefix + (symbol,))]
        machine.add_transition(state, symbol, output, target)
    self._access = dict(enumerate(representatives))
    return machine

  # -- Learner ------------------------------------------------------------

  def start_learning(self) -> None:
    self._stabilize()

  def get_hypothesis_model(self) -> MealyMachine:
    if self._hypothesis is None:
      raise RuntimeError("start_learning() has not been called")
    return self._hypothesis

  def refine_hypothesis(self, counterexample: Counterexample) -> bool:
    hypothesis = self.get_hypothesis_model()
    word = counterexample.input
    observed = self.oracle.output(word)
    predicted = hypothesis.compute_output(word)
    if observed == predicted:
      logger.debug("counterexample %s is not one for the current oracle answers", counterexample)
      return False

    if not self._handle(hypothesis, word):
      return False
    self._stabilize()
    refined = self.get_hypothesis_model()
    return refined.size() > hypothesis.size() or refined.compute_output(word) != predicted

  def _handle(self, hypothesis: MealyMachine, word: Word) -> bool:  # pragma: no cover - interface
    raise NotImplementedError


class LStarMealy(ObservationTableLearner):
  """Adds every prefix of the counterexample to the access rows."""

  def _handle(self, hypothesis: MealyMachine, word: Word) -> bool:
    added = False
    for end in range(1, len(word) + 1):
      prefix = word[:end]
      if prefix not in self.short_prefixes:
        self.short_prefixes.append(prefix)
        added = True
    return added


class MalerPnueliMealy(ObservationTableLearner):
  """Adds every suffix of the counterexample to the distinguishing columns."""

  def _handle(self, hypothesis: MealyMachine, word: Word) -> bool:
    added = False
    for start in range(len(word)):
      suffix = word[start:]
      if suffix not in self.suffixes:
        self.suffixes.append(suffix)
        added = True
    return added


class RivestSchapireMealy(ObservationTableLearner):
  """Binary-searches the counterexample for one distinguishing suffix."""

  def _agrees(self, hypothesis: MealyMachine, word: Word, split: int) -> bool:
    state = hypothesis.successor(hypothesis.initial, word[:split])
    rest = word[split:]
    return self.oracle.answer_query(self._access[state], rest) == hypothesis.output_from(state, rest)

  def _handle(self, hypothesis: MealyMachine, word: Word) -> bool:
    low, high = 0, len(word)
    while high - low > 1:
      mid = (low + high) // 2
      if self._agrees(hypothesis, word, mid):
        high = mid
      else:
        low = mid
    suffix = word[low + 1:]
    if not suffix or suffix in self.suffixes:
      return False
    self.suffixes.append(suffix)
    return True


LEARNERS: Dict[LearnerKind, Callable[[Alphabet, MembershipOracle], Learner]] = {
    LearnerKind.LSTAR: LStarMealy,
    LearnerKind.MP: MalerPnueliMealy,
    LearnerKind.RS: RivestSchapireMealy,
}


def make_learner(kind: LearnerKind, alphabet: Alphabet, oracle: MembershipOracle) -> Learner:
  factory = LEARNERS.get(kind)
  if factory is None:
    supported = ", ".join(sorted(item.value for item in LEARNERS))
    raise ConfigError(f"unsupported learning algorithm '{kind.value}' (available: {supported})")
  return factory(alphabet, oracle)
