from __future__ import annotations

from pathlib import Path

from kitewrk.charts import render_summary_charts, render_text_histogram
from kitewrk.collector import Summary


def test_text_histogram_buckets_values() -> None:
    text = render_text_histogram([1.0, 1.5, 2.0, 9.0], "Wait Times", bins=4, width=10)
    lines = text.splitlines()

    assert lines[0] == "Wait Times"
    assert len(lines) == 1 + 4 + 1
    assert lines[1].endswith("########## 3")
    assert lines[-1].startswith("  n=4")


def test_text_histogram_without_data() -> None:
    assert render_text_histogram([], "Wait Times") == "Wait Times\n  <no data>"


def test_text_histogram_single_value() -> None:
    text = render_text_histogram([4.2], "Wait Times")

    assert "# 1" in text


def test_render_summary_charts(tmp_path: Path) -> None:
    summary = Summary(
        total=3,
        passes=2,
        failures=1,
        wait_times=(1.0, 2.5),
        run_times=(10.0, 12.0),
        build_times=(11.0, 14.5),
    )

    path = render_summary_charts(summary, tmp_path)

    assert path == tmp_path / "durations.png"
    assert path.stat().st_size > 0


def test_render_summary_charts_without_passes(tmp_path: Path) -> None:
    path = render_summary_charts(Summary(total=1, passes=0, failures=1), tmp_path, "empty.png")

    assert path.exists()
