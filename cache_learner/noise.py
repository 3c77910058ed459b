"""Seed-driven noise models applied around a query replay.

PRE noise models an unintended extra cache operation happening before the
measured accesses; POST noise models a single misread hit way. Every draw comes
from the caller's generator, in a fixed order (coin first, then indices), so a
fixed seed reproduces a run exactly.
"""

from __future__ import annotations

import logging
import random
from typing import List, Sequence

from .alphabet import MISS_OUTPUT, Word, way_of
from .config import NoiseKind, NoiseSpec

logger = logging.getLogger(__name__)


def insert_noise(prefix: Word, alphabet: Sequence[str], probability: float, rng: random.Random) -> Word:
  """Insert one random alphabet symbol at a random position with ``probability``."""
  if rng.random() >= probability or len(alphabet) == 0:
    return prefix
  insert_index = rng.randrange(len(prefix) + 1)
  symbol_index = rng.randrange(len(alphabet))
  noisy = prefix[:insert_index] + (alphabet[symbol_index],) + prefix[insert_index:]
  logger.debug("prefix after noise: %s", noisy)
  return noisy


def _rewrite_way(original: str, way: int) -> str:
  if original.startswith("h(") and original.endswith(")"):
    return f"h({way})"
  return str(way)


def flip_noise(output: Word, ways: int, probability: float, rng: random.Random) -> Word:
  """Replace one hit-way reading with a different way with ``probability``."""
  if rng.random() >= probability:
    return output
  hit_positions = [idx for idx, symbol in enumerate(output) if symbol != MISS_OUTPUT]
  if not hit_positions:
    return output
  position = hit_positions[rng.randrange(len(hit_positions))]
  original = way_of(output[position])
  candidates = [way for way in range(ways) if way != original]
  if not candidates:
    return output
  new_way = candidates[rng.randrange(len(candidates))]

  noisy: List[str] = list(output)
  noisy[position] = _rewrite_way(output[position], new_way)
  logger.debug("output before noise: %s, after noise: %s", output, tuple(noisy))
  return tuple(noisy)


class NoiseInjector:
  """Applies one run's NoiseSpec; each direction is applied at most once per query."""

  def __init__(self, spec: NoiseSpec):
    self.spec = spec

  @property
  def kind(self) -> NoiseKind:
    return self.spec.kind

  def before(self, prefix: Word, alphabet: Sequence[str], rng: random.Random) -> Word:
    if self.spec.kind is not NoiseKind.PRE:
      return prefix
    return insert_noise(prefix, alphabet, self.spec.probability, rng)

  def after(self, output: Word, alphabet: Sequence[str], rng: random.Random) -> Word:
    if self.spec.kind is not NoiseKind.POST:
      return output
    # The alphabet holds one hit symbol per way plus the miss symbol.
    return flip_noise(output, len(alphabet) - 1, self.spec.probability, rng)
