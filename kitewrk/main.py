from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from pathlib import Path

from .buildkite import API_CHOICES, create_client
from .buildkite.base import DEFAULT_HTTP_TIMEOUT_S
from .charts import render_summary_charts, render_text_histogram
from .collector import BuildResultCollector, Summary
from .config import (
    DEFAULT_BRANCH,
    DEFAULT_BUILD_COUNT,
    DEFAULT_COMMIT,
    DEFAULT_POLL_INTERVAL_S,
    RunParams,
)
from .exceptions import BuildSkippedError
from .load import BuildLoadGenerator

LOGGER = logging.getLogger("kitewrk")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="kitewrk",
        description="A tool for benchmarking and load-testing Buildkite builds",
    )
    parser.add_argument(
        "--org",
        default=os.environ.get("KITEWRK_ORG"),
        help="The organization to create builds in",
    )
    parser.add_argument(
        "--pipeline",
        default=os.environ.get("KITEWRK_PIPELINE"),
        help="Pipeline slug to create builds in (REST API)",
    )
    parser.add_argument(
        "--pipeline-id",
        default=os.environ.get("KITEWRK_PIPELINE_ID"),
        help="Pipeline ID to create builds in (GraphQL API)",
    )
    parser.add_argument(
        "--branch", default=os.environ.get("KITEWRK_BRANCH", DEFAULT_BRANCH)
    )
    parser.add_argument(
        "--commit", default=os.environ.get("KITEWRK_COMMIT", DEFAULT_COMMIT)
    )
    parser.add_argument(
        "--token",
        default=os.environ.get("KITEWRK_TOKEN") or os.environ.get("BUILDKITE_TOKEN"),
        help="Buildkite API access token",
    )
    parser.add_argument(
        "--builds",
        type=int,
        default=os.environ.get("KITEWRK_BUILDS", str(DEFAULT_BUILD_COUNT)),
        help="Number of builds to create",
    )
    parser.add_argument(
        "--api",
        choices=API_CHOICES,
        default=os.environ.get("KITEWRK_API", "graphql"),
        help="Which Buildkite API to talk to",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=os.environ.get("KITEWRK_POLL_INTERVAL", str(DEFAULT_POLL_INTERVAL_S)),
        help="Seconds between status queries for each build",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=os.environ.get("KITEWRK_TIMEOUT"),
        help="Overall deadline in seconds after which outstanding builds are abandoned",
    )
    parser.add_argument(
        "--http-timeout",
        type=float,
        default=os.environ.get("KITEWRK_HTTP_TIMEOUT", str(DEFAULT_HTTP_TIMEOUT_S)),
        help="Timeout in seconds for each API request",
    )
    parser.add_argument(
        "--output-dir",
        default=os.environ.get("KITEWRK_OUTPUT_DIR"),
        help="Directory to store per-build CSV, charts and a manifest",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=_env_flag("KITEWRK_DEBUG"),
        help="Log raw API requests and responses",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("KITEWRK_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    args = parser.parse_args(argv)

    if not args.token:
        parser.error("a Buildkite token is required (--token or KITEWRK_TOKEN)")
    if args.builds < 0:
        parser.error("--builds must be >= 0")
    if args.poll_interval < 0:
        parser.error("--poll-interval must be >= 0")
    if args.api == "graphql" and not args.pipeline_id:
        parser.error("--pipeline-id is required with the graphql API")
    if args.api == "rest" and not (args.org and args.pipeline):
        parser.error("--org and --pipeline are required with the rest API")
    return args


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging("DEBUG" if args.debug else args.log_level)

    params = RunParams(
        pipeline=args.pipeline_id if args.api == "graphql" else args.pipeline,
        builds=args.builds,
        branch=args.branch,
        commit=args.commit,
    )
    LOGGER.info(
        "Creating %d build(s) of %s (branch=%s, commit=%s) via the %s API",
        params.builds,
        params.pipeline,
        params.branch,
        params.commit,
        args.api,
    )

    started = time.monotonic()
    service = create_client(
        args.api,
        args.token,
        org=args.org,
        timeout=args.http_timeout,
        debug=args.debug,
    )
    generator = BuildLoadGenerator(
        service,
        poll_interval=args.poll_interval,
        timeout_s=args.timeout,
    )
    try:
        result = generator.run(params)
        try:
            result.wait()
        except KeyboardInterrupt:
            LOGGER.warning("Interrupted, cancelling outstanding builds")
            generator.stop()
            result.wait()
    finally:
        service.close()

    errors = result.errors()
    summary = result.summary()

    LOGGER.info(
        "Finished %d builds in %.2fs (passed=%d, failed=%d, errors=%d)",
        summary.total,
        time.monotonic() - started,
        summary.passes,
        summary.failures,
        summary.error_count,
    )
    stats = summary.statistics()
    if not stats.empty:
        LOGGER.info("Duration statistics for passed builds:\n%s", stats.to_string())

    print(render_text_histogram(summary.wait_times, "Wait Times"))

    if args.output_dir:
        write_artefacts(result, summary, Path(args.output_dir))

    if errors:
        report_errors(errors)
        return 1
    return 0


def write_artefacts(result: BuildResultCollector, summary: Summary, output_dir: Path) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    LOGGER.info("Output directory: %s", output_dir)

    df = result.build_dataframe()
    csv_path = output_dir / "builds.csv"
    df.to_csv(csv_path, index=False)
    LOGGER.info("Saved build results to %s (%d rows)", csv_path, len(df))

    chart_path = render_summary_charts(summary, output_dir)

    manifest_path = output_dir / "manifest.json"
    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(
            {"summary": summary.as_dict(), "csv": str(csv_path), "chart": str(chart_path)},
            f,
            indent=2,
        )
    LOGGER.info("Manifest written to %s", manifest_path)
    return manifest_path


def report_errors(errors: list[BaseException]) -> None:
    LOGGER.error("%d build(s) could not be measured:", len(errors))
    for error in errors:
        LOGGER.error("  %s: %s", type(error).__name__, error)
    if any(isinstance(error, BuildSkippedError) for error in errors):
        LOGGER.error("Builds were skipped; disable build skipping on the pipeline and retry")


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in {"1", "true", "yes", "on"}


if __name__ == "__main__":
    sys.exit(main())
