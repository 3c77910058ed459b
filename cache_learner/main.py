from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from .alphabet import cache_alphabet
from .config import LearnConfig, add_config_arguments, config_from_args
from .errors import ConfigError, NonConvergence, SUTError
from .experiment import RunOutcome, run_learning
from .mealy import load_machine
from .sul import MealySUL

TEMP_MODEL_PATH = Path(".model.tmp")


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(prog="cache-learner", description="Learn a Mealy model of a cache replacement policy")
  parser.add_argument("--model", type=Path, required=True, help="JSON Mealy machine replayed as the system under learning")
  parser.add_argument("--reference", type=Path, default=None, help="JSON Mealy machine used to score checkpoints")
  parser.add_argument("-o", "--output", type=Path, default=None, help="Write the learnt model as .dot")
  parser.add_argument("--summary", type=Path, default=None, help="Write the run summary as JSON")
  parser.add_argument("--xlsx", type=Path, default=None, help="Write the checkpoint table as .xlsx")
  parser.add_argument("--csv", type=Path, default=None, help="Write the checkpoint table as .csv")
  parser.add_argument("--plot", type=Path, default=None, help="Write the checkpoint plot as .png")
  add_config_arguments(parser)
  return parser


def configure_logging(config: LearnConfig) -> None:
  if config.silent:
    level = logging.WARNING
  elif config.verbose:
    level = logging.DEBUG
  else:
    level = logging.INFO
  logging.basicConfig(level=level, format="%(message)s")


def print_summary(outcome: RunOutcome) -> None:
  rule = "-------------------------------------------------------"
  print(rule)
  print(f"--> Hypothesis: {outcome.hypothesis.size()} states ({outcome.result.termination.value})")
  print(rule)
  print("Summary Statistics: ")
  for name, value in outcome.statistics.items():
    print(f"\t{name}: {value}")
  print(f"\trounds: {outcome.result.rounds}  refinements: {outcome.result.refinements}")
  print(f"\tseed: {outcome.seed}")
  if outcome.lifetime is not None:
    print(
        f"\tcorrect queries: {outcome.lifetime.correct_query_count}/{outcome.lifetime.total_budget}"
        f"  ratio={outcome.lifetime.ratio:.6f}"
    )
  print(rule)


def main(argv: Optional[List[str]] = None) -> int:
  parser = build_parser()
  args = parser.parse_args(argv)
  try:
    config = config_from_args(args)
    machine = load_machine(args.model)
    if machine.alphabet != cache_alphabet(config.ways):
      raise ConfigError(f"Model alphabet {list(machine.alphabet)} does not match {config.ways} ways")
    reference = load_machine(args.reference) if args.reference is not None else None
  except (ConfigError, ValueError, OSError) as exc:
    parser.error(str(exc))

  configure_logging(config)
  try:
    outcome = run_learning(
        config,
        MealySUL(machine),
        reference=reference,
        temp_model_path=TEMP_MODEL_PATH if config.temp_model else None,
    )
  except NonConvergence as exc:
    print(f"Learning did not converge: {exc}")
    if exc.hypothesis is not None:
      print(f"--> Last hypothesis: {exc.hypothesis.size()} states")
    return 1
  except SUTError as exc:
    print(f"System under learning failed: {exc}")
    return 1
  except ConfigError as exc:
    parser.error(str(exc))
  print_summary(outcome)

  # Imported here so a plain run does not pay for openpyxl and matplotlib.
  from .report import write_checkpoint_csv, write_checkpoint_workbook, write_model, write_summary

  if args.output is not None:
    print(f"Model saved to {write_model(outcome.hypothesis, args.output)}")
  if args.summary is not None:
    print(f"Run summary saved to {write_summary(outcome, args.summary)}")
  if args.xlsx is not None:
    print(f"Checkpoint table saved to {write_checkpoint_workbook(outcome, args.xlsx)}")
  if args.csv is not None:
    print(f"Checkpoint table saved to {write_checkpoint_csv(outcome, args.csv)}")
  if args.plot is not None:
    from .plot import plot_checkpoints

    print(f"Checkpoint plot saved to {plot_checkpoints(outcome, args.plot)}")
  return 0


if __name__ == "__main__":
  raise SystemExit(main())
