from __future__ import annotations


class SUTError(RuntimeError):
  """Fault raised while replaying a query against the system under learning."""


class ConfigError(ValueError):
  """Invalid or unsupported run configuration."""


class NonConvergence(RuntimeError):
  """Refinement stopped making progress.

  Raised when too many consecutive counterexamples left the hypothesis unchanged,
  which happens when residual noise makes membership answers inconsistent.
  """

  def __init__(self, rounds: int, hypothesis=None):
    super().__init__(f"{rounds} consecutive counterexamples did not refine the hypothesis")
    self.rounds = rounds
    self.hypothesis = hypothesis
