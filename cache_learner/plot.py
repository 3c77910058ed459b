from __future__ import annotations

from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt

from .experiment import RunOutcome


def plot_checkpoints(outcome: RunOutcome, out_path: Path) -> Path:
  """Step plot of hypothesis size over queries; correct checkpoints are shaded."""
  checkpoints = outcome.result.checkpoints
  counts = [checkpoint.query_count for checkpoint in checkpoints]
  sizes = [checkpoint.hypothesis.size() for checkpoint in checkpoints]
  if outcome.lifetime is not None:
    end = outcome.lifetime.total_budget
  else:
    end = max([outcome.total_queries] + counts)

  fig, ax = plt.subplots(figsize=(10, 4))
  if checkpoints:
    ax.step(counts + [end], sizes + [sizes[-1]], where="post", linewidth=1.5, label="hypothesis states")
  ax.set_xlim(0, max(end, 1))
  if outcome.lifetime is not None:
    bounds = counts + [end]
    for idx, correct in enumerate(outcome.lifetime.correct):
      if correct:
        ax.axvspan(bounds[idx], bounds[idx + 1], alpha=0.2, color="tab:green")
    ax.set_title(f"Hypothesis size per query (correct {outcome.lifetime.ratio:.2%} of budget)")
  else:
    ax.set_title("Hypothesis size per query")
  ax.set_xlabel("Queries")
  ax.set_ylabel("States")
  if checkpoints:
    ax.legend(fontsize=8)
  fig.tight_layout()

  out_path.parent.mkdir(parents=True, exist_ok=True)
  fig.savefig(out_path, dpi=160)
  plt.close(fig)
  return out_path
