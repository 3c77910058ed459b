"""Membership-oracle filters: query statistics, answer caching, cache consistency."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .alphabet import Alphabet, Query, Word
from .equivalence import Counterexample, EquivalenceOracle
from .mealy import MealyMachine
from .oracle import MembershipOracle

logger = logging.getLogger(__name__)


class CounterOracle(MembershipOracle):
  """Counts the queries forwarded to the wrapped oracle."""

  def __init__(self, delegate: MembershipOracle, name: str):
    self.delegate = delegate
    self.name = name
    self.count = 0

  def answer_query(self, prefix: Word, suffix: Word) -> Word:
    self.count += 1
    return self.delegate.answer_query(prefix, suffix)

  def process_queries(self, queries: Iterable[Query]) -> List[Word]:
    batch = list(queries)
    self.count += len(batch)
    return self.delegate.process_queries(batch)

  def summary(self) -> str:
    return f"{self.name}: {self.count}"


class _Node:
  __slots__ = ("children",)

  def __init__(self):
    self.children: Dict[str, Tuple[Optional[str], "_Node"]] = {}


class CachedOracle(MembershipOracle):
  """Memoizes answers in a prefix tree keyed by the full input word.

  Only the outputs of suffix positions are ever observed, so prefix positions
  stay unknown until some other query covers them.
  """

  def __init__(self, delegate: MembershipOracle, alphabet: Alphabet):
    self.delegate = delegate
    self.alphabet = alphabet
    self._root = _Node()
    self._queries: Dict[Query, None] = {}
    self.hits = 0
    self.conflicts = 0

  def lookup(self, prefix: Word, suffix: Word) -> Optional[Word]:
    node = self._root
    outputs: List[str] = []
    for idx, symbol in enumerate(prefix + suffix):
      child = node.children.get(symbol)
      if child is None:
        return None
      output, node = child
      if idx >= len(prefix):
        if output is None:
          return None
        outputs.append(output)
    return tuple(outputs)

  def insert(self, prefix: Word, suffix: Word, outputs: Word) -> None:
    node = self._root
    for idx, symbol in enumerate(prefix + suffix):
      observed = outputs[idx - len(prefix)] if idx >= len(prefix) else None
      child = node.children.get(symbol)
      if child is None:
        node.children[symbol] = (observed, _Node())
      else:
        known, next_node = child
        if observed is not None and known is not None and known != observed:
          self.conflicts += 1
          logger.warning("cache conflict at %s: cached %s, observed %s", (prefix + suffix)[: idx + 1], known, observed)
        if observed is not None:
          node.children[symbol] = (observed, next_node)
      node = node.children[symbol][1]
    self._queries[Query(prefix, suffix)] = None

  def answer_query(self, prefix: Word, suffix: Word) -> Word:
    prefix, suffix = tuple(prefix), tuple(suffix)
    cached = self.lookup(prefix, suffix)
    if cached is not None:
      self.hits += 1
      return cached
    outputs = self.delegate.answer_query(prefix, suffix)
    self.insert(prefix, suffix, outputs)
    return outputs

  def process_queries(self, queries: Iterable[Query]) -> List[Word]:
    return [self.answer_query(query.prefix, query.suffix) for query in queries]

  @property
  def entries(self) -> List[Tuple[Query, Word]]:
    """Every cached query with the outputs the cache serves for it now."""
    return [(query, self.lookup(query.prefix, query.suffix)) for query in self._queries]

  def create_consistency_test(self) -> "ConsistencyOracle":
    return ConsistencyOracle(self)


class ConsistencyOracle(EquivalenceOracle):
  """Checks every cached answer against the hypothesis without touching the SUL."""

  def __init__(self, cache: CachedOracle):
    self.cache = cache

  def find_counterexample(self, hypothesis: MealyMachine, alphabet: Alphabet) -> Optional[Counterexample]:
    for query, observed in self.cache.entries:
      predicted = hypothesis.compute_suffix_output(query.prefix, query.suffix)
      if predicted != observed:
        logger.info("cache inconsistency on %s", query)
        return Counterexample(query=query, predicted=predicted, observed=observed)
    return None
