from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, List, Optional

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from .experiment import RunOutcome
from .mealy import MealyMachine

CHECKPOINT_COLUMNS = ["checkpoint", "query_count", "states", "lifetime", "correct"]


def ensure_parent(path: Path) -> Path:
  path.parent.mkdir(parents=True, exist_ok=True)
  return path


def write_summary(outcome: RunOutcome, summary_path: Path) -> Path:
  with ensure_parent(summary_path).open("w", encoding="utf-8") as handle:
    json.dump(outcome.to_dict(), handle, indent=2)
  return summary_path


def write_model(hypothesis: MealyMachine, output_path: Path) -> Path:
  with ensure_parent(output_path).open("w", encoding="utf-8") as handle:
    hypothesis.write_dot(handle)
  return output_path


def checkpoint_rows(outcome: RunOutcome) -> List[List[Any]]:
  lifetime = outcome.lifetime
  rows: List[List[Any]] = []
  for idx, checkpoint in enumerate(outcome.result.checkpoints):
    life: Optional[int] = lifetime.lifetimes[idx] if lifetime is not None else None
    correct: Optional[int] = (1 if lifetime.correct[idx] else 0) if lifetime is not None else None
    rows.append([idx, checkpoint.query_count, checkpoint.hypothesis.size(), life, correct])
  return rows


def write_checkpoint_csv(outcome: RunOutcome, out_csv: Path) -> Path:
  with ensure_parent(out_csv).open("w", encoding="utf-8", newline="") as handle:
    writer = csv.writer(handle)
    writer.writerow(CHECKPOINT_COLUMNS)
    writer.writerows(checkpoint_rows(outcome))
  return out_csv


def write_checkpoint_workbook(outcome: RunOutcome, out_xlsx: Path) -> Path:
  """Excel workbook with one row per checkpoint plus a run summary sheet."""
  wb = Workbook()
  wb.remove(wb.active)
  header_font = Font(bold=True)

  ws = wb.create_sheet("Checkpoints")
  ws.append(CHECKPOINT_COLUMNS)
  ws.freeze_panes = "A2"
  for cell in ws[1]:
    cell.font = header_font
  for col, width in enumerate([12, 12, 8, 10, 8], start=1):
    ws.column_dimensions[get_column_letter(col)].width = width
  for row in checkpoint_rows(outcome):
    ws.append(row)

  ws_summary = wb.create_sheet("Summary")
  ws_summary.column_dimensions["A"].width = 32
  ws_summary.column_dimensions["B"].width = 20
  summary_rows = [
      ("seed", outcome.seed),
      ("termination", outcome.result.termination.value),
      ("hypothesis states", outcome.hypothesis.size()),
      ("rounds", outcome.result.rounds),
      ("refinements", outcome.result.refinements),
      ("no-effect refinements", outcome.result.no_effect_refinements),
  ]
  summary_rows.extend(sorted(outcome.statistics.items()))
  if outcome.lifetime is not None:
    summary_rows.append(("correct queries", outcome.lifetime.correct_query_count))
    summary_rows.append(("total budget", outcome.lifetime.total_budget))
    summary_rows.append(("correctness ratio", outcome.lifetime.ratio))
  for name, value in summary_rows:
    ws_summary.append([name, value])
    ws_summary.cell(row=ws_summary.max_row, column=1).font = header_font
  if outcome.lifetime is not None:
    ws_summary.cell(row=ws_summary.max_row, column=2).number_format = "0.000000"

  wb.save(ensure_parent(out_xlsx))
  return out_xlsx
