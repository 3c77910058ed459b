from __future__ import annotations

import itertools
import json
from pathlib import Path

import pytest

from cache_learner.alphabet import MISS_INPUT, MISS_OUTPUT, Alphabet, cache_alphabet, hit_symbol, way_output
from cache_learner.mealy import MealyMachine
from cache_learner.oracle import MembershipOracle


def lru_machine(ways: int) -> MealyMachine:
  """LRU cache set: state is the way order from least to most recently used.

  Hits evict nothing and output "_"; a miss outputs the evicted way.
  """
  alphabet = cache_alphabet(ways)
  orders = list(itertools.permutations(range(ways)))
  initial = tuple(range(ways))
  orders.remove(initial)
  orders.insert(0, initial)
  index = {order: idx for idx, order in enumerate(orders)}
  machine = MealyMachine(alphabet, initial=0)
  for order in orders:
    for way in range(ways):
      touched = tuple(w for w in order if w != way) + (way,)
      machine.add_transition(index[order], hit_symbol(way), MISS_OUTPUT, index[touched])
    victim = order[0]
    machine.add_transition(index[order], MISS_INPUT, way_output(victim), index[order[1:] + (victim,)])
  return machine


def fifo_machine(ways: int) -> MealyMachine:
  """FIFO cache set: state is the way that will be evicted next."""
  alphabet = cache_alphabet(ways)
  machine = MealyMachine(alphabet, initial=0)
  for pointer in range(ways):
    for way in range(ways):
      machine.add_transition(pointer, hit_symbol(way), MISS_OUTPUT, pointer)
    machine.add_transition(pointer, MISS_INPUT, way_output(pointer), (pointer + 1) % ways)
  return machine


def two_state_machine() -> MealyMachine:
  """Minimal two state model over {h(0), m()}: the first miss fills the way."""
  alphabet = cache_alphabet(1)
  machine = MealyMachine(alphabet, initial=0)
  machine.add_transition(0, "h(0)", MISS_OUTPUT, 0)
  machine.add_transition(0, "m()", MISS_OUTPUT, 1)
  machine.add_transition(1, "h(0)", "0", 1)
  machine.add_transition(1, "m()", "0", 1)
  return machine


def constant_machine(alphabet: Alphabet, output: str) -> MealyMachine:
  machine = MealyMachine(alphabet, initial=0)
  for symbol in alphabet:
    machine.add_transition(0, symbol, output, 0)
  return machine


@pytest.fixture
def two_state():
  return two_state_machine()


@pytest.fixture
def lru2():
  return lru_machine(2)


@pytest.fixture
def write_model(tmp_path):
  def _write(machine: MealyMachine, name: str = "model.json") -> Path:
    path = tmp_path / name
    path.write_text(json.dumps(machine.to_dict()))
    return path

  return _write


class MachineOracle(MembershipOracle):
  """Noise free membership oracle answering straight from a known machine."""

  def __init__(self, machine: MealyMachine):
    self.machine = machine
    self.calls = 0

  def answer_query(self, prefix, suffix):
    self.calls += 1
    return self.machine.compute_suffix_output(prefix, suffix)
