"""
Command-line launcher for benchgraph runs.
"""
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from benchgraph.config import load_settings, setup_logging
from benchgraph.errors import ConfigError
from benchgraph.workflow import BenchmarkWorkflowController

logger = logging.getLogger("benchgraph.cli")

EXIT_OK = 0
EXIT_RUN_FAILED = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="benchgraph",
        description="Expand and execute the benchmark task graph",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("run", "Expand, resolve and execute every unit, then publish results"),
        ("plan", "Expand and resolve only; print the units a run would execute"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--test", action="store_true", default=None, help="Run the collaborator in test mode")
        sub.add_argument("--output-dir", default=None, help="Where artifacts and summaries are published")
        sub.add_argument("--backend", default=None, help="Isolation backend (local or docker)")
        sub.add_argument("--log-level", default=None, help="Override the configured log level")
    return parser


async def _run(controller: BenchmarkWorkflowController) -> int:
    summary = await controller.run()
    sys.stdout.write(summary.render_text())
    return EXIT_OK if summary.success else EXIT_RUN_FAILED


async def _plan(controller: BenchmarkWorkflowController) -> int:
    report = await controller.plan()
    sys.stdout.write(report.render_text())
    return EXIT_OK if report.success else EXIT_RUN_FAILED


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(
            test_mode=args.test,
            output_dir=args.output_dir,
            isolation_backend=args.backend,
            log_level=args.log_level,
        )
        setup_logging(args.command, settings)
        controller = BenchmarkWorkflowController(settings)
        if args.command == "plan":
            return asyncio.run(_plan(controller))
        return asyncio.run(_run(controller))
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.stderr.write(f"benchgraph: {e}\n")
        return EXIT_CONFIG_ERROR
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        return EXIT_RUN_FAILED


if __name__ == "__main__":
    sys.exit(main())
