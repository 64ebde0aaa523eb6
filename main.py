"""
Main entry point for the competitive-intelligence pipeline service.
"""

import asyncio
import logging
import os
import signal

from dotenv import load_dotenv

from compintel.config import PipelineConfig, load_config
from compintel.infra.scheduler import Scheduler
from compintel.pipeline_orchestrator import PipelineOrchestrator, create_orchestrator
from compintel.plugin_loader import list_available, refresh_registry


logger = logging.getLogger(__name__)


def setup_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s"
    )


async def report_stats(orchestrator: PipelineOrchestrator) -> None:
    """Log queue depth and pipeline counters for operational tooling."""
    try:
        queue_stats = await orchestrator.queue.stats()
    except Exception as e:
        logger.error(f"Failed to read queue stats: {e}")
        return
    logger.info(f"Queue: {queue_stats} | Pipeline: {orchestrator.stats.snapshot()}")
    if queue_stats.get("dead"):
        logger.warning(f"{queue_stats['dead']} dead-lettered item(s) awaiting inspection")


def schedule_stats_report(
    scheduler: Scheduler, orchestrator: PipelineOrchestrator, config: PipelineConfig
) -> None:
    report = config.stats_report
    if report is None:
        return

    if not (report.cron or report.interval_seconds):
        logger.warning("'stats_report' configured without 'cron' or 'interval_seconds'")
        return

    scheduler.add_job(
        report_stats,
        "stats_report",
        cron=report.cron,
        interval_seconds=report.interval_seconds,
        args=[orchestrator],
    )


async def main():
    """Run workers until SIGINT/SIGTERM, then drain and stop."""
    load_dotenv()
    setup_logging()

    config_file = os.getenv("PIPELINE_CONFIG", "pipeline.yml")
    config = load_config(config_file)

    logger.info("Discovering plugins...")
    refresh_registry()
    for name in sorted(list_available()):
        logger.info(f"  - {name}")

    orchestrator = create_orchestrator(config)
    scheduler = Scheduler()

    # Setup graceful shutdown
    stop_event = asyncio.Event()

    def signal_handler():
        logger.info("Received shutdown signal")
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        asyncio.get_running_loop().add_signal_handler(sig, signal_handler)

    try:
        await orchestrator.start()
        await scheduler.start()
        schedule_stats_report(scheduler, orchestrator, config)

        await stop_event.wait()
    finally:
        logger.info("Shutting down...")
        await scheduler.stop()
        await orchestrator.drain_and_stop()
        logger.info("Shutdown complete")


def run_pipeline_service():
    """Entry point that can be called from other scripts."""
    asyncio.run(main())


if __name__ == "__main__":
    run_pipeline_service()
