import numpy as np
import pytest

from conftest import constant_machine, lru_machine
from cache_learner.alphabet import cache_alphabet
from cache_learner.driver import Checkpoint
from cache_learner.lifetime import LifetimeEvaluator


@pytest.fixture
def reference():
  return constant_machine(cache_alphabet(1), "_")


def test_lifetimes_run_until_next_checkpoint_and_budget():
  lifetimes = LifetimeEvaluator.lifetimes([0, 50, 120], 200)
  np.testing.assert_array_equal(lifetimes, [50, 70, 80])


def test_evaluate_sums_lifetimes_of_correct_checkpoints(reference):
  alphabet = reference.alphabet
  checkpoints = [
      Checkpoint(0, constant_machine(alphabet, "_")),
      Checkpoint(50, constant_machine(alphabet, "0")),
      Checkpoint(120, constant_machine(alphabet, "_")),
  ]

  report = LifetimeEvaluator(reference).evaluate(checkpoints, 200)

  assert report.lifetimes == [50, 70, 80]
  assert report.correct == [True, False, True]
  assert report.correct_query_count == 130
  assert report.ratio == pytest.approx(0.65)
  assert report.to_dict()["ratio"] == pytest.approx(0.65)


def test_last_checkpoint_at_budget_has_zero_lifetime(reference):
  checkpoints = [Checkpoint(0, constant_machine(reference.alphabet, "0")), Checkpoint(10, reference)]
  report = LifetimeEvaluator(reference).evaluate(checkpoints, 10)
  assert report.lifetimes == [10, 0]
  assert report.correct_query_count == 0


def test_custom_equivalence_is_used(reference):
  checkpoints = [Checkpoint(0, lru_machine(2))]
  report = LifetimeEvaluator(reference, equivalence=lambda hyp, ref: hyp.size() == 2).evaluate(checkpoints, 5)
  assert report.correct == [True]
  assert report.ratio == 1.0


@pytest.mark.parametrize(
    "counts, budget",
    [
        ([], 10),
        ([-1, 5], 10),
        ([0, 5, 5], 10),
        ([0, 7, 3], 10),
        ([0, 50], 20),
    ],
)
def test_invalid_checkpoint_streams_are_rejected(counts, budget):
  with pytest.raises(ValueError):
    LifetimeEvaluator.lifetimes(counts, budget)


def test_non_positive_budget_is_rejected(reference):
  with pytest.raises(ValueError):
    LifetimeEvaluator(reference).evaluate([Checkpoint(0, reference)], 0)
