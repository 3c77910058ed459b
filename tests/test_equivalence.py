import random

import pytest

from conftest import MachineOracle, constant_machine, fifo_machine, lru_machine
from cache_learner.alphabet import cache_alphabet
from cache_learner.equivalence import (
    OracleChain,
    RandomWordsOracle,
    RandomWpOracle,
    WpMethodOracle,
    words_up_to,
)


class FixedOracle:
  def __init__(self, result):
    self.result = result
    self.calls = 0

  def find_counterexample(self, hypothesis, alphabet):
    self.calls += 1
    return self.result


def test_words_up_to_enumerates_by_length():
  words = list(words_up_to(["a", "b"], 2))
  assert words[0] == ()
  assert len(words) == 7
  assert words[-1] == ("b", "b")


def test_wp_method_finds_counterexample_for_wrong_hypothesis():
  machine = lru_machine(2)
  hypothesis = constant_machine(machine.alphabet, "_")
  oracle = WpMethodOracle(MachineOracle(machine), max_depth=1)

  counterexample = oracle.find_counterexample(hypothesis, machine.alphabet)

  assert counterexample is not None
  assert counterexample.query.prefix == ()
  assert counterexample.predicted == hypothesis.compute_output(counterexample.input)
  assert counterexample.observed == machine.compute_output(counterexample.input)
  assert counterexample.predicted != counterexample.observed


def test_wp_method_accepts_correct_hypothesis():
  machine = fifo_machine(3)
  oracle = WpMethodOracle(MachineOracle(machine), max_depth=2)
  assert oracle.find_counterexample(machine, machine.alphabet) is None
  assert oracle.tests_run > 0


def test_wp_method_rejects_negative_depth():
  with pytest.raises(ValueError):
    WpMethodOracle(MachineOracle(lru_machine(2)), max_depth=-1)


def test_random_oracles_are_reproducible_and_bounded():
  machine = lru_machine(2)
  hypothesis = constant_machine(machine.alphabet, "_")

  def search(seed):
    oracle = RandomWordsOracle(MachineOracle(machine), 1, 6, 100, random.Random(seed))
    return oracle.find_counterexample(hypothesis, machine.alphabet)

  assert search(3) == search(3)
  assert search(3) is not None

  exhausted = RandomWordsOracle(MachineOracle(machine), 1, 6, 0, random.Random(3))
  assert exhausted.find_counterexample(hypothesis, machine.alphabet) is None


def test_random_wp_finds_counterexample():
  machine = lru_machine(2)
  hypothesis = constant_machine(machine.alphabet, "_")
  oracle = RandomWpOracle(MachineOracle(machine), 10, 30, 50, random.Random(8))

  counterexample = oracle.find_counterexample(hypothesis, machine.alphabet)

  assert counterexample is not None
  assert len(counterexample.input) >= 10


def test_random_wp_accepts_correct_hypothesis():
  machine = fifo_machine(2)
  oracle = RandomWpOracle(MachineOracle(machine), 2, 4, 50, random.Random(8))
  assert oracle.find_counterexample(machine, machine.alphabet) is None


def test_chain_returns_first_counterexample():
  alphabet = cache_alphabet(1)
  hypothesis = constant_machine(alphabet, "_")
  first = FixedOracle(None)
  second = FixedOracle("ce")
  third = FixedOracle("other")

  assert OracleChain([first, second, third]).find_counterexample(hypothesis, alphabet) == "ce"
  assert third.calls == 0
  assert OracleChain([]).find_counterexample(hypothesis, alphabet) is None
