"""
Script to run configured pipelines once, or keep them running on their schedules

Pipelines are declared in an importable Python module exposing:
    VAULT: mapping of credential id -> AuthConfig (or raw dicts)
    ADAPTERS: mapping of adapter id -> adapter factory
    PIPELINES: list of Pipeline objects
    TRANSFORMER: optional transform collaborator

Usage:
    python scripts/run_pipelines.py my_project.pipelines
    python scripts/run_pipelines.py my_project.pipelines --schedule
"""

import argparse
import asyncio
import importlib
import os
import sys
import logging

# Add current directory to path to allow imports from core, ingestion, etc.
sys.path.append(os.getcwd())

from core.logging import setup_logging
from ingestion.runner import Orchestrator
from ingestion.scheduler import PipelineScheduler
from schemas.auth import parse_auth_config

logger = logging.getLogger(__name__)


def load_definitions(module_path: str):
    """Import the pipeline module and build an orchestrator from it"""
    module = importlib.import_module(module_path)

    vault = {
        credential_id: parse_auth_config(auth) if isinstance(auth, dict) else auth
        for credential_id, auth in getattr(module, "VAULT", {}).items()
    }
    orchestrator = Orchestrator(
        vault,
        getattr(module, "ADAPTERS", {}),
        transformer=getattr(module, "TRANSFORMER", None)
    )
    return orchestrator, list(getattr(module, "PIPELINES", []))


async def run_once(orchestrator: Orchestrator, pipelines) -> int:
    """Run every pipeline sequentially; returns the number that failed"""
    if not pipelines:
        logger.warning("No pipelines configured. Nothing to run.")
        return 0

    failures = 0
    for pipeline in pipelines:
        try:
            logger.info(f"Running pipeline: {pipeline.id}")
            result = await orchestrator.run_pipeline(pipeline)
            logger.info(f"Pipeline {pipeline.id} completed: Extracted={len(result.data)}")
        except Exception as e:
            logger.error(f"Pipeline {pipeline.id} failed: {str(e)}")
            failures += 1
            continue

    logger.info("All pipelines completed")
    return failures


async def run_scheduled(orchestrator: Orchestrator, pipelines, stop_event: asyncio.Event = None):
    """Register scheduled pipelines and run until stop_event is set"""
    scheduler = PipelineScheduler(orchestrator)

    for pipeline in pipelines:
        if pipeline.schedule is None:
            logger.warning(f"Pipeline {pipeline.id} has no schedule, skipping")
            continue
        scheduler.add_pipeline(pipeline)

    if not scheduler.pipelines:
        logger.warning("No scheduled pipelines configured.")
        return

    stop_event = stop_event or asyncio.Event()
    scheduler.start()
    try:
        await stop_event.wait()
    finally:
        scheduler.stop()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run extract-load pipelines")
    parser.add_argument("module", help="Importable module declaring VAULT, ADAPTERS and PIPELINES")
    parser.add_argument("--schedule", action="store_true", help="Run pipelines on their schedules")
    parser.add_argument("--verbose", action="store_true", help="Print info-level pipeline events")
    args = parser.parse_args(argv)

    setup_logging(show_info_events=args.verbose)
    orchestrator, pipelines = load_definitions(args.module)

    if args.schedule:
        asyncio.run(run_scheduled(orchestrator, pipelines))
        return 0

    failures = asyncio.run(run_once(orchestrator, pipelines))
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
