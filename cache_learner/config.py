from __future__ import annotations

import argparse
import enum
import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import ConfigError

MAX_SIZE_DEFAULT = 2**31 - 1


class NoiseKind(enum.Enum):
  NONE = "none"
  PRE = "pre"
  POST = "post"


class LearnerKind(enum.Enum):
  PAS = "pas"
  LSTAR = "lstar"
  TTT = "ttt"
  KV = "kv"
  MP = "mp"
  DT = "dt"
  DHC = "dhc"
  RS = "rs"


def parse_enum(kind: type, value: Any):
  if isinstance(value, kind):
    return value
  try:
    return kind(str(value).strip().lower())
  except ValueError as exc:
    choices = ", ".join(member.value for member in kind)
    raise ConfigError(f"Unsupported {kind.__name__} '{value}' (choices: {choices})") from exc


@dataclass(frozen=True)
class NoiseSpec:
  kind: NoiseKind = NoiseKind.NONE
  probability: float = 0.0

  def __post_init__(self):
    object.__setattr__(self, "kind", parse_enum(NoiseKind, self.kind))
    if not 0.0 <= self.probability <= 1.0:
      raise ConfigError(f"Noise probability must be in [0, 1], got {self.probability}")


@dataclass(frozen=True)
class VotingPolicy:
  repetitions: int = 1
  hit_threshold: float = 0.8
  miss_threshold: float = 0.2

  def __post_init__(self):
    if self.repetitions < 1:
      raise ConfigError(f"Voting repetitions must be >= 1, got {self.repetitions}")
    for name in ("hit_threshold", "miss_threshold"):
      value = getattr(self, name)
      if not 0.0 < value < 1.0:
        raise ConfigError(f"{name} must be in (0, 1), got {value}")
    if self.miss_threshold >= self.hit_threshold:
      raise ConfigError("miss_threshold must be lower than hit_threshold")


@dataclass(frozen=True)
class LearnConfig:
  """Immutable run configuration, built once at startup."""

  ways: int = 4
  noise_kind: NoiseKind = NoiseKind.NONE
  noise_probability: float = 0.0
  voting_repetitions: int = 1
  hit_ratio: float = 0.8
  miss_ratio: float = 0.2
  max_hypothesis_size: int = MAX_SIZE_DEFAULT
  equivalence_budget: int = 1000
  max_depth: int = 1
  use_random_equivalence: bool = False
  use_cache: bool = True
  learner_kind: LearnerKind = LearnerKind.LSTAR
  seed: Optional[int] = None
  r_min: int = 10
  r_len: int = 30
  max_no_effect_rounds: int = 8
  limit: Optional[int] = None
  temp_model: bool = False
  verbose: bool = False
  silent: bool = False

  def __post_init__(self):
    object.__setattr__(self, "noise_kind", parse_enum(NoiseKind, self.noise_kind))
    object.__setattr__(self, "learner_kind", parse_enum(LearnerKind, self.learner_kind))
    self.validate()

  def validate(self) -> None:
    if self.ways < 1:
      raise ConfigError(f"ways must be >= 1, got {self.ways}")
    if self.max_hypothesis_size < 1:
      raise ConfigError("max_hypothesis_size must be >= 1")
    if self.equivalence_budget < 0:
      raise ConfigError("equivalence_budget must be >= 0")
    if self.max_depth < 0:
      raise ConfigError("max_depth must be >= 0")
    if self.r_min < 0 or self.r_len < 1:
      raise ConfigError("r_min must be >= 0 and r_len >= 1")
    if self.max_no_effect_rounds < 1:
      raise ConfigError("max_no_effect_rounds must be >= 1")
    if self.limit is not None and self.limit < 1:
      raise ConfigError("limit must be >= 1")
    # The value objects check probability and thresholds when built.
    _ = (self.noise, self.voting)

  @property
  def noise(self) -> NoiseSpec:
    return NoiseSpec(kind=self.noise_kind, probability=self.noise_probability)

  @property
  def voting(self) -> VotingPolicy:
    return VotingPolicy(
        repetitions=self.voting_repetitions,
        hit_threshold=self.hit_ratio,
        miss_threshold=self.miss_ratio,
    )

  def with_seed(self, seed: int) -> "LearnConfig":
    return replace(self, seed=seed)

  def to_dict(self) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for item in fields(self):
      value = getattr(self, item.name)
      data[item.name] = value.value if isinstance(value, enum.Enum) else value
    return data


CONFIG_KEYS = tuple(item.name for item in fields(LearnConfig))


def config_from_mapping(values: Mapping[str, Any]) -> LearnConfig:
  unknown = sorted(set(values) - set(CONFIG_KEYS))
  if unknown:
    raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
  try:
    return LearnConfig(**dict(values))
  except TypeError as exc:
    raise ConfigError(str(exc)) from exc


def load_config(config_path: Path) -> Dict[str, Any]:
  """Read configuration values from a JSON file."""
  with config_path.open("r", encoding="utf-8") as handle:
    data = json.load(handle)
  if not isinstance(data, dict):
    raise ConfigError(f"Config file {config_path} must contain a JSON object")
  return data


def add_config_arguments(parser: argparse.ArgumentParser) -> None:
  parser.add_argument("--config", type=Path, default=None, help="JSON file with configuration values")
  parser.add_argument("-w", "--ways", type=int, help="Cache associativity (default: 4)")
  parser.add_argument("--noise-kind", choices=[kind.value for kind in NoiseKind], help="Noise model (default: none)")
  parser.add_argument("-n", "--noise", dest="noise_probability", type=float, help="Probability of noise per query")
  parser.add_argument("--votes", dest="voting_repetitions", type=int, help="Repetitions per voted query (default: 1)")
  parser.add_argument("--hit-ratio", type=float, help="Ratio of hits to consider a HIT (default: 0.8)")
  parser.add_argument("--miss-ratio", type=float, help="Ratio of hits at or below which a query is a MISS (default: 0.2)")
  parser.add_argument("-m", "--max-size", dest="max_hypothesis_size", type=int, help="Maximum number of hypothesis states")
  parser.add_argument("--r-bound", dest="equivalence_budget", type=int, help="Random equivalence words per round (default: 1000)")
  parser.add_argument("-d", "--depth", dest="max_depth", type=int, help="Wp-method depth (default: 1)")
  parser.add_argument("--r-min", type=int, help="Minimal length of random middle word (default: 10)")
  parser.add_argument("--r-len", type=int, help="Expected extra length of random middle word (default: 30)")
  parser.add_argument("--random", dest="use_random_equivalence", action="store_true", default=None, help="Try the random Wp-method before the Wp-method")
  parser.add_argument("--no-cache", dest="use_cache", action="store_false", default=None, help="Do not cache membership queries")
  parser.add_argument("-l", "--learner", dest="learner_kind", choices=[kind.value for kind in LearnerKind], help="Learning algorithm (default: lstar)")
  parser.add_argument("--seed", type=int, help="Seed for the run's random generator (default: time based)")
  parser.add_argument("--max-no-effect", dest="max_no_effect_rounds", type=int, help="Consecutive no-effect refinements before giving up (default: 8)")
  parser.add_argument("--limit", type=int, help="Total query budget used to score checkpoints")
  parser.add_argument("--temp", dest="temp_model", action="store_true", default=None, help="Write the partial model to '.model.tmp' each round")
  parser.add_argument("--verbose", action="store_true", default=None, help="Log every query")
  parser.add_argument("-s", "--silent", action="store_true", default=None, help="Only log warnings")


def config_from_args(args: argparse.Namespace) -> LearnConfig:
  """Merge the optional JSON config file with explicit command-line values."""
  values: Dict[str, Any] = {}
  if getattr(args, "config", None) is not None:
    values.update(load_config(args.config))
  for key in CONFIG_KEYS:
    value = getattr(args, key, None)
    if value is not None:
      values[key] = value
  if values.get("silent"):
    values["verbose"] = False
  return config_from_mapping(values)
