from __future__ import annotations

import random
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .config import LearnConfig
from .driver import LearnerDriver, LearningResult
from .equivalence import EquivalenceOracle, OracleChain, RandomWpOracle, WpMethodOracle
from .filters import CachedOracle, CounterOracle
from .lifetime import LifetimeEvaluator, LifetimeReport
from .lstar import Learner, make_learner
from .mealy import MealyMachine
from .oracle import MembershipOracle, QueryAnswerer, VotingOracle, majority_error_probability
from .sul import SUL


def resolve_seed(config: LearnConfig) -> LearnConfig:
  """The only place a time based seed may enter a run."""
  if config.seed is not None:
    return config
  return config.with_seed(time.time_ns() & (2**63 - 1))


@dataclass
class LearningSetup:
  answerer: QueryAnswerer
  voting: VotingOracle
  membership_counter: CounterOracle
  membership_oracle: MembershipOracle
  equivalence_counter: CounterOracle
  equivalence_oracle: MembershipOracle
  membership_cache: Optional[CachedOracle]
  learner: Learner
  driver: LearnerDriver

  def statistics(self) -> Dict[str, int]:
    stats = {
        "total queries": self.answerer.query_count,
        self.membership_counter.name: self.membership_counter.count,
        self.equivalence_counter.name: self.equivalence_counter.count,
    }
    for oracle in (self.membership_oracle, self.equivalence_oracle):
      if isinstance(oracle, CounterOracle):
        stats[oracle.name] = oracle.count
    return stats


def build_setup(
    config: LearnConfig,
    sul: SUL,
    rng: random.Random,
    temp_model_path: Optional[Path] = None,
) -> LearningSetup:
  answerer = QueryAnswerer(sul)
  alphabet = answerer.alphabet
  voting = VotingOracle(answerer, config.noise, config.voting, rng)

  membership_counter = CounterOracle(voting, "membership queries")
  equivalence_counter = CounterOracle(voting, "equivalence queries")
  membership_cache: Optional[CachedOracle] = None
  membership_oracle: MembershipOracle = membership_counter
  equivalence_oracle: MembershipOracle = equivalence_counter
  if config.use_cache:
    membership_cache = CachedOracle(membership_counter, alphabet)
    membership_oracle = CounterOracle(membership_cache, "membership queries hit cache")
    equivalence_oracle = CounterOracle(CachedOracle(equivalence_counter, alphabet), "equivalence queries hit cache")

  learner = make_learner(config.learner_kind, alphabet, membership_oracle)
  # Cache consistency first, then random search, then the structural search.
  strategies: List[EquivalenceOracle] = []
  if membership_cache is not None:
    strategies.append(membership_cache.create_consistency_test())
  if config.use_random_equivalence:
    strategies.append(RandomWpOracle(equivalence_oracle, config.r_min, config.r_len, config.equivalence_budget, rng))
  strategies.append(WpMethodOracle(equivalence_oracle, config.max_depth))
  driver = LearnerDriver(
      learner,
      alphabet,
      OracleChain(strategies),
      max_hypothesis_size=config.max_hypothesis_size,
      max_no_effect_rounds=config.max_no_effect_rounds,
      query_count=lambda: answerer.query_count,
      query_budget=config.limit,
      temp_model_path=temp_model_path,
  )
  return LearningSetup(
      answerer=answerer,
      voting=voting,
      membership_counter=membership_counter,
      membership_oracle=membership_oracle,
      equivalence_counter=equivalence_counter,
      equivalence_oracle=equivalence_oracle,
      membership_cache=membership_cache,
      learner=learner,
      driver=driver,
  )


@dataclass
class RunOutcome:
  config: LearnConfig
  result: LearningResult
  statistics: Dict[str, int]
  lifetime: Optional[LifetimeReport] = None

  @property
  def seed(self) -> Optional[int]:
    return self.config.seed

  @property
  def hypothesis(self) -> MealyMachine:
    return self.result.hypothesis

  @property
  def total_queries(self) -> int:
    return self.statistics["total queries"]

  def to_dict(self) -> dict:
    summary = {
        "config": self.config.to_dict(),
        "seed": self.seed,
        "termination": self.result.termination.value,
        "rounds": self.result.rounds,
        "refinements": self.result.refinements,
        "no_effect_refinements": self.result.no_effect_refinements,
        "hypothesis_size": self.hypothesis.size(),
        "statistics": dict(self.statistics),
        "expected_vote_error": majority_error_probability(
            self.config.noise_probability, self.config.voting_repetitions
        ),
        "checkpoints": [
            {"query_count": checkpoint.query_count, "size": checkpoint.hypothesis.size()}
            for checkpoint in self.result.checkpoints
        ],
        "counterexamples": [str(counterexample) for counterexample in self.result.counterexamples],
    }
    if self.lifetime is not None:
      summary["lifetime"] = self.lifetime.to_dict()
    return summary


def run_learning(
    config: LearnConfig,
    sul: SUL,
    reference: Optional[MealyMachine] = None,
    temp_model_path: Optional[Path] = None,
) -> RunOutcome:
  """Learn a model of ``sul``; score the checkpoints if a reference model is given."""
  config = resolve_seed(config)
  rng = random.Random(config.seed)
  setup = build_setup(config, sul, rng, temp_model_path=temp_model_path)
  result = setup.driver.run()
  statistics = setup.statistics()

  lifetime = None
  if reference is not None:
    budget = config.limit if config.limit is not None else max(statistics["total queries"], 1)
    if result.checkpoints:
      lifetime = LifetimeEvaluator(reference).evaluate(result.checkpoints, budget)
    else:
      # The first hypothesis already cost more than the budget.
      lifetime = LifetimeReport([], [], [], correct_query_count=0, total_budget=budget)
  return RunOutcome(config=config, result=result, statistics=statistics, lifetime=lifetime)
