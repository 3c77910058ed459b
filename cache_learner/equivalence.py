from __future__ import annotations

import itertools
import logging
import random
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from .alphabet import Alphabet, Query, Word
from .mealy import MealyMachine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Counterexample:
  """A query on which the hypothesis prediction differs from the observed answer."""

  query: Query
  predicted: Word
  observed: Word

  @property
  def input(self) -> Word:
    return self.query.input

  def __str__(self) -> str:
    return f"{self.query} predicted={' '.join(self.predicted)} observed={' '.join(self.observed)}"


class EquivalenceOracle:
  """Searches for a word distinguishing the hypothesis from the system."""

  def find_counterexample(self, hypothesis: MealyMachine, alphabet: Alphabet) -> Optional[Counterexample]:  # pragma: no cover - interface
    raise NotImplementedError


def words_up_to(alphabet: Sequence[str], depth: int) -> Iterator[Word]:
  for length in range(depth + 1):
    yield from itertools.product(alphabet, repeat=length)


class _TestingOracle(EquivalenceOracle):
  """Runs generated test words through a membership oracle and compares outputs."""

  def __init__(self, oracle):
    self.oracle = oracle
    self.tests_run = 0

  def test_words(self, hypothesis: MealyMachine, alphabet: Alphabet) -> Iterable[Word]:  # pragma: no cover - interface
    raise NotImplementedError

  def find_counterexample(self, hypothesis: MealyMachine, alphabet: Alphabet) -> Optional[Counterexample]:
    seen = set()
    for word in self.test_words(hypothesis, alphabet):
      if not word or word in seen:
        continue
      seen.add(word)
      self.tests_run += 1
      observed = self.oracle.answer_query((), word)
      predicted = hypothesis.compute_output(word)
      if observed != predicted:
        counterexample = Counterexample(query=Query((), word), predicted=predicted, observed=observed)
        logger.debug("%s found %s", type(self).__name__, counterexample)
        return counterexample
    return None


def _suffixes_or_empty(words: List[Word]) -> List[Word]:
  return words if words else [()]


class WpMethodOracle(_TestingOracle):
  """Depth-bounded systematic conformance test (partial W-method).

  Phase one runs state cover x middle words x characterizing set; phase two runs
  transition cover x middle words x the identifier of the state reached.
  """

  def __init__(self, oracle, max_depth: int):
    super().__init__(oracle)
    if max_depth < 0:
      raise ValueError("max_depth must be >= 0")
    self.max_depth = max_depth

  def test_words(self, hypothesis: MealyMachine, alphabet: Alphabet) -> Iterable[Word]:
    access = hypothesis.access_sequences()
    characterizing = _suffixes_or_empty(hypothesis.characterizing_set())
    identifiers = hypothesis.state_identifiers()
    middles = list(words_up_to(alphabet, self.max_depth))

    for state_access in access.values():
      for middle in middles:
        for suffix in characterizing:
          yield state_access + middle + suffix

    for state_access in access.values():
      for symbol in alphabet:
        transition = state_access + (symbol,)
        for middle in middles:
          reached = hypothesis.successor(hypothesis.initial, transition + middle)
          for suffix in _suffixes_or_empty(identifiers.get(reached, [])):
            yield transition + middle + suffix


class RandomWpOracle(_TestingOracle):
  """Randomized Wp-method: random access sequence, random middle part, state identifier."""

  def __init__(self, oracle, min_length: int, expected_length: int, bound: int, rng: random.Random):
    super().__init__(oracle)
    self.min_length = min_length
    self.expected_length = expected_length
    self.bound = bound
    self.rng = rng

  def _middle_length(self) -> int:
    length = self.min_length
    while self.rng.random() > 1.0 / (self.expected_length + 1.0):
      length += 1
    return length

  def test_words(self, hypothesis: MealyMachine, alphabet: Alphabet) -> Iterable[Word]:
    if not alphabet:
      return
    access = list(hypothesis.access_sequences().values())
    characterizing = _suffixes_or_empty(hypothesis.characterizing_set())
    identifiers: Dict[int, List[Word]] = hypothesis.state_identifiers()

    for _ in range(self.bound):
      word = access[self.rng.randrange(len(access))]
      word += tuple(alphabet[self.rng.randrange(len(alphabet))] for _ in range(self._middle_length()))
      if self.rng.random() < 0.5:
        suffixes = characterizing
      else:
        reached = hypothesis.successor(hypothesis.initial, word)
        suffixes = _suffixes_or_empty(identifiers.get(reached, []))
      yield word + suffixes[self.rng.randrange(len(suffixes))]


class RandomWordsOracle(_TestingOracle):
  """Uniformly random words with lengths in [min_length, max_length]."""

  def __init__(self, oracle, min_length: int, max_length: int, bound: int, rng: random.Random):
    super().__init__(oracle)
    if min_length < 1 or max_length < min_length:
      raise ValueError("Need 1 <= min_length <= max_length")
    self.min_length = min_length
    self.max_length = max_length
    self.bound = bound
    self.rng = rng

  def test_words(self, hypothesis: MealyMachine, alphabet: Alphabet) -> Iterable[Word]:
    if not alphabet:
      return
    for _ in range(self.bound):
      length = self.rng.randint(self.min_length, self.max_length)
      yield tuple(alphabet[self.rng.randrange(len(alphabet))] for _ in range(length))


class OracleChain(EquivalenceOracle):
  """Asks each oracle in turn and returns the first counterexample."""

  def __init__(self, oracles: Iterable[EquivalenceOracle]):
    self.oracles = list(oracles)

  def find_counterexample(self, hypothesis: MealyMachine, alphabet: Alphabet) -> Optional[Counterexample]:
    for oracle in self.oracles:
      counterexample = oracle.find_counterexample(hypothesis, alphabet)
      if counterexample is not None:
        return counterexample
    return None
