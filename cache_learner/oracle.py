from __future__ import annotations

import enum
import logging
import math
import random
import threading
from collections import Counter
from typing import Iterable, List

from .alphabet import MISS_OUTPUT, Query, Word
from .config import NoiseSpec, VotingPolicy
from .errors import SUTError
from .noise import NoiseInjector
from .sul import SUL

logger = logging.getLogger(__name__)


class MembershipOracle:
  """Answers membership queries with the outputs produced by the suffix."""

  def answer_query(self, prefix: Word, suffix: Word) -> Word:  # pragma: no cover - interface
    raise NotImplementedError

  def process_queries(self, queries: Iterable[Query]) -> List[Word]:
    return [self.answer_query(query.prefix, query.suffix) for query in queries]

  def output(self, inputs: Word) -> Word:
    return self.answer_query((), tuple(inputs))


class QueryAnswerer:
  """Owns exclusive access to one SUL and replays queries against it.

  One ``answer`` call (reset, noise, steps, noise, release) runs under a single
  re-entrant lock, so steps of different queries never interleave. The session
  is released on every exit path.
  """

  def __init__(self, sul: SUL, label: str = "mq"):
    self.sul = sul
    self.label = label
    self.lock = threading.RLock()
    self.query_count = 0
    self._alphabet = sul.alphabet()

  @property
  def alphabet(self):
    return self._alphabet

  def answer(self, query: Query, noise: NoiseSpec, rng: random.Random) -> Word:
    injector = NoiseInjector(noise)
    with self.lock:
      logger.debug("(%s) processQuery: %s", self.label, query)
      self._call(self.sul.reset, "reset")
      try:
        prefix = injector.before(query.prefix, self._alphabet, rng)
        for symbol in prefix:
          self._call(self.sul.step, "step", symbol)
        outputs: List[str] = []
        for symbol in query.suffix:
          outputs.append(self._call(self.sul.step, "step", symbol))
        result = injector.after(tuple(outputs), self._alphabet, rng)
      finally:
        self.sul.release()
      self.query_count += 1
    return result

  def process_queries(self, queries: Iterable[Query], noise: NoiseSpec, rng: random.Random) -> List[Word]:
    with self.lock:
      return [self.answer(query, noise, rng) for query in queries]

  @staticmethod
  def _call(method, name: str, *args):
    try:
      return method(*args)
    except SUTError:
      raise
    except Exception as exc:
      raise SUTError(f"SUL {name}({', '.join(map(str, args))}) failed: {exc}") from exc


class Verdict(enum.Enum):
  HIT = "hit"
  MISS = "miss"
  UNKNOWN = "unknown"


def majority_vote(samples: Iterable[Word]) -> Word:
  """Most frequent sample; ties go to the sample seen first."""
  counts = Counter(samples)
  if not counts:
    raise ValueError("Cannot vote over zero samples")
  return max(counts, key=counts.__getitem__)


def majority_error_probability(p: float, repetitions: int) -> float:
  """Probability that a wrong answer, drawn with probability ``p`` per sample, wins the vote.

  Assumes a single fixed wrong answer. For an even number of repetitions a tie
  is counted as an error.
  """
  if repetitions < 1:
    raise ValueError("repetitions must be >= 1")
  threshold = math.ceil(repetitions / 2)
  return sum(
      math.comb(repetitions, k) * p**k * (1.0 - p) ** (repetitions - k)
      for k in range(threshold, repetitions + 1)
  )


class VotingOracle(MembershipOracle):
  """Repeats each query and answers with the majority response."""

  def __init__(self, answerer: QueryAnswerer, noise: NoiseSpec, policy: VotingPolicy, rng: random.Random):
    self.answerer = answerer
    self.noise = noise
    self.policy = policy
    self.rng = rng

  def samples(self, query: Query) -> List[Word]:
    return [self.answerer.answer(query, self.noise, self.rng) for _ in range(self.policy.repetitions)]

  def vote(self, query: Query) -> Word:
    samples = self.samples(query)
    result = majority_vote(samples)
    if len(set(samples)) > 1:
      logger.debug("vote over %d samples for %s settled on %s", len(samples), query, result)
    return result

  def classify(self, query: Query) -> Verdict:
    """HIT/MISS verdict on the last suffix output, using the policy's thresholds."""
    if not query.suffix:
      raise ValueError("Cannot classify a query with an empty suffix")
    samples = self.samples(query)
    hits = sum(1 for sample in samples if sample[-1] != MISS_OUTPUT)
    ratio = hits / len(samples)
    if ratio >= self.policy.hit_threshold:
      return Verdict.HIT
    if ratio <= self.policy.miss_threshold:
      return Verdict.MISS
    return Verdict.UNKNOWN

  def answer_query(self, prefix: Word, suffix: Word) -> Word:
    return self.vote(Query(tuple(prefix), tuple(suffix)))

  def process_queries(self, queries: Iterable[Query]) -> List[Word]:
    with self.answerer.lock:
      return [self.vote(query) for query in queries]
