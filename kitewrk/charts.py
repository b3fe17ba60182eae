from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import matplotlib.pyplot as plt
import numpy as np
import seaborn as sns

from .collector import Summary

LOGGER = logging.getLogger("kitewrk.charts")

sns.set_style("whitegrid")
plt.rcParams["figure.dpi"] = 100
plt.rcParams["savefig.dpi"] = 150
plt.rcParams["font.size"] = 10
plt.rcParams["axes.titlesize"] = 12

DURATION_PANELS: dict[str, tuple[str, str]] = {
    "job_wait_s": ("Job Wait Times", "#F18F01"),
    "job_run_s": ("Job Run Times", "#2E86AB"),
    "build_s": ("Build Times", "#6A994E"),
}


def render_text_histogram(
    values: Sequence[float],
    title: str,
    bins: int = 10,
    width: int = 40,
) -> str:
    """Render a horizontal bar histogram suitable for a terminal."""
    lines = [title]
    if len(values) == 0:
        lines.append("  <no data>")
        return "\n".join(lines)

    counts, edges = np.histogram(np.asarray(values, dtype=float), bins=min(bins, len(values)))
    peak = int(counts.max())
    for count, low, high in zip(counts, edges[:-1], edges[1:]):
        bar = "#" * int(round(width * count / peak)) if peak else ""
        lines.append(f"  {low:9.2f}s - {high:9.2f}s | {bar} {int(count)}")
    lines.append(
        f"  n={len(values)} mean={np.mean(values):.2f}s "
        f"p50={np.percentile(values, 50):.2f}s p95={np.percentile(values, 95):.2f}s"
    )
    return "\n".join(lines)


def render_summary_charts(
    summary: Summary,
    output_dir: Path,
    filename: str = "durations.png",
) -> Path:
    """Plot one histogram per duration metric of the passed builds."""
    chart_path = output_dir / filename
    frame = summary.to_dataframe()

    fig, axes = plt.subplots(1, len(DURATION_PANELS), figsize=(15, 4.5))
    for ax, (column, (title, color)) in zip(axes, DURATION_PANELS.items()):
        ax.set_title(title, fontweight="bold")
        ax.set_xlabel("Seconds")
        if frame.empty:
            ax.text(0.5, 0.5, "No passed builds", ha="center", va="center", transform=ax.transAxes)
            ax.set_yticks([])
            continue
        sns.histplot(frame[column], ax=ax, bins="auto", color=color, edgecolor="white")
        ax.set_ylabel("Builds")

    fig.suptitle(
        f"{summary.passes} passed / {summary.failures} failed of {summary.total} builds",
        fontsize=13,
    )
    fig.tight_layout()
    fig.savefig(chart_path, bbox_inches="tight", facecolor="white", edgecolor="none")
    plt.close(fig)
    LOGGER.info("Rendering chart %s", chart_path)
    return chart_path


__all__ = ["render_summary_charts", "render_text_histogram"]
