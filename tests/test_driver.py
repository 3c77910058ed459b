import pytest

from conftest import MachineOracle, constant_machine, lru_machine, two_state_machine
from cache_learner.alphabet import Query, cache_alphabet
from cache_learner.config import LearnConfig
from cache_learner.driver import DriverState, LearnerDriver, Termination
from cache_learner.equivalence import Counterexample, OracleChain, WpMethodOracle
from cache_learner.errors import NonConvergence
from cache_learner.experiment import run_learning
from cache_learner.lstar import LStarMealy
from cache_learner.sul import MealySUL


class StubLearner:
  def __init__(self, hypothesis, refinements=()):
    self.hypothesis = hypothesis
    self.refinements = list(refinements)
    self.started = 0
    self.refined = []

  def start_learning(self):
    self.started += 1

  def get_hypothesis_model(self):
    return self.hypothesis

  def refine_hypothesis(self, counterexample):
    self.refined.append(counterexample)
    return self.refinements.pop(0) if self.refinements else False


class RecordingOracle:
  def __init__(self, name, log, results):
    self.name = name
    self.log = log
    self.results = list(results)

  def find_counterexample(self, hypothesis, alphabet):
    self.log.append(self.name)
    return self.results.pop(0) if self.results else None


def _counterexample():
  return Counterexample(Query((), ("m()",)), predicted=("_",), observed=("0",))


def test_two_state_system_converges_to_two_states():
  machine = two_state_machine()
  learner = LStarMealy(machine.alphabet, MachineOracle(machine))
  structural = WpMethodOracle(MachineOracle(machine), max_depth=1)
  driver = LearnerDriver(learner, machine.alphabet, structural, max_hypothesis_size=10)

  result = driver.run()

  assert result.termination is Termination.NO_COUNTEREXAMPLE
  assert result.hypothesis.size() == 2
  assert driver.state is DriverState.DONE
  assert structural.find_counterexample(result.hypothesis, machine.alphabet) is None
  assert result.hypothesis.equivalent_to(machine)


def test_constant_system_needs_no_refinement():
  alphabet = cache_alphabet(1)
  machine = constant_machine(alphabet, "h(0)")

  outcome = run_learning(LearnConfig(ways=1, seed=5), MealySUL(machine))

  hypothesis = outcome.hypothesis
  assert hypothesis.size() == 1
  assert outcome.result.rounds == 1
  assert outcome.result.refinements == 0
  assert outcome.result.counterexamples == []
  assert hypothesis.compute_output(("h(0)", "m()", "m()", "h(0)")) == ("h(0)",) * 4


def test_size_budget_stops_before_equivalence_test():
  machine = lru_machine(3)
  log = []
  structural = RecordingOracle("structural", log, [])
  learner = LStarMealy(machine.alphabet, MachineOracle(machine))
  driver = LearnerDriver(learner, machine.alphabet, structural, max_hypothesis_size=2)

  result = driver.run()

  assert result.termination is Termination.SIZE_BUDGET
  assert result.hypothesis.size() >= 2
  assert result.rounds == 0
  assert log == []


def test_oracles_are_asked_in_order_until_one_answers():
  alphabet = cache_alphabet(1)
  hypothesis = constant_machine(alphabet, "_")
  log = []
  consistency = RecordingOracle("consistency", log, [None, _counterexample()])
  randomized = RecordingOracle("random", log, [_counterexample()])
  structural = RecordingOracle("structural", log, [])
  learner = StubLearner(hypothesis, refinements=[True, True])
  driver = LearnerDriver(learner, alphabet, OracleChain([consistency, randomized, structural]))

  result = driver.run()

  assert log == ["consistency", "random", "consistency", "consistency", "random", "structural"]
  assert result.rounds == 3
  assert result.refinements == 2
  assert len(learner.refined) == 2


def test_no_effect_refinements_raise_non_convergence():
  alphabet = cache_alphabet(1)
  hypothesis = constant_machine(alphabet, "_")
  structural = RecordingOracle("structural", [], [_counterexample()] * 10)
  driver = LearnerDriver(StubLearner(hypothesis), alphabet, structural, max_no_effect_rounds=3)

  with pytest.raises(NonConvergence) as excinfo:
    driver.run()

  assert excinfo.value.rounds == 3
  assert excinfo.value.hypothesis is hypothesis
  assert driver.state is DriverState.DONE


def test_effective_refinement_resets_no_effect_streak():
  alphabet = cache_alphabet(1)
  hypothesis = constant_machine(alphabet, "_")
  structural = RecordingOracle("structural", [], [_counterexample()] * 4)
  learner = StubLearner(hypothesis, refinements=[False, True, False, True])
  driver = LearnerDriver(learner, alphabet, structural, max_no_effect_rounds=2)

  result = driver.run()

  assert result.termination is Termination.NO_COUNTEREXAMPLE
  assert result.no_effect_refinements == 2
  assert result.refinements == 2
  assert result.rounds == 5


def test_checkpoints_increase_and_temp_model_is_written(tmp_path):
  machine = lru_machine(3)
  oracle = MachineOracle(machine)
  temp_path = tmp_path / ".model.tmp"
  driver = LearnerDriver(
      LStarMealy(machine.alphabet, oracle),
      machine.alphabet,
      WpMethodOracle(oracle, max_depth=3),
      query_count=lambda: oracle.calls,
      temp_model_path=temp_path,
  )

  result = driver.run()

  counts = [checkpoint.query_count for checkpoint in result.checkpoints]
  assert counts == sorted(set(counts))
  assert result.checkpoints[-1].hypothesis is result.hypothesis
  assert temp_path.read_text().startswith("digraph g {")


def test_driver_rejects_invalid_no_effect_cap():
  alphabet = cache_alphabet(1)
  with pytest.raises(ValueError):
    LearnerDriver(StubLearner(constant_machine(alphabet, "_")), alphabet, RecordingOracle("s", [], []), max_no_effect_rounds=0)


class SequenceLearner(StubLearner):
  """Hands out a new hypothesis object after every effective refinement."""

  def __init__(self, hypotheses):
    super().__init__(hypotheses[0])
    self.hypotheses = list(hypotheses)

  def refine_hypothesis(self, counterexample):
    self.refined.append(counterexample)
    self.hypotheses.pop(0)
    self.hypothesis = self.hypotheses[0]
    return True


def test_query_budget_stops_the_run_and_bounds_checkpoints():
  alphabet = cache_alphabet(1)
  hypotheses = [constant_machine(alphabet, output) for output in ("_", "0", "h(0)")]
  counts = iter([0, 10, 20])
  structural = RecordingOracle("structural", [], [_counterexample()] * 5)
  driver = LearnerDriver(
      SequenceLearner(hypotheses),
      alphabet,
      structural,
      query_count=lambda: next(counts),
      query_budget=15,
  )

  result = driver.run()

  assert result.termination is Termination.QUERY_BUDGET
  assert [checkpoint.query_count for checkpoint in result.checkpoints] == [0, 10]
  assert [checkpoint.hypothesis for checkpoint in result.checkpoints] == hypotheses[:2]
  assert result.hypothesis is hypotheses[2]
  assert result.rounds == 2


def test_query_budget_reached_exactly_keeps_the_checkpoint():
  alphabet = cache_alphabet(1)
  hypothesis = constant_machine(alphabet, "_")
  log = []
  driver = LearnerDriver(
      StubLearner(hypothesis), alphabet, RecordingOracle("structural", log, []), query_count=lambda: 7, query_budget=7
  )

  result = driver.run()

  assert result.termination is Termination.QUERY_BUDGET
  assert [checkpoint.query_count for checkpoint in result.checkpoints] == [7]
  assert result.rounds == 0
  assert log == []


def test_driver_rejects_invalid_query_budget():
  alphabet = cache_alphabet(1)
  with pytest.raises(ValueError):
    LearnerDriver(StubLearner(constant_machine(alphabet, "_")), alphabet, RecordingOracle("s", [], []), query_budget=0)
