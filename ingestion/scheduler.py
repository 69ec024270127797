
import logging
from typing import Dict, List
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from core.config import settings
from core.exceptions import InvalidPipelineError
from ingestion.runner import Orchestrator
from schemas.pipeline import Pipeline, Schedule

logger = logging.getLogger(__name__)


def build_trigger(schedule: Schedule, timezone: str = None) -> CronTrigger:
    """Map a pipeline schedule onto a cron trigger"""
    timezone = timezone or settings.SCHEDULER_TIMEZONE
    if schedule.frequency == "hourly":
        return CronTrigger(minute=schedule.minute, timezone=timezone)
    if schedule.frequency == "daily":
        return CronTrigger(hour=schedule.hour, minute=schedule.minute, timezone=timezone)
    # weekly runs on Mondays
    return CronTrigger(
        day_of_week="mon", hour=schedule.hour, minute=schedule.minute, timezone=timezone
    )


class PipelineScheduler:
    def __init__(self, orchestrator: Orchestrator):
        self.orchestrator = orchestrator
        self.scheduler = AsyncIOScheduler(timezone=settings.SCHEDULER_TIMEZONE)
        self.pipelines: Dict[str, Pipeline] = {}

    async def run_pipeline_job(self, pipeline_id: str):
        """Job to run one scheduled pipeline"""
        pipeline = self.pipelines.get(pipeline_id)
        if pipeline is None:
            logger.warning(f"Scheduler: pipeline {pipeline_id} is no longer scheduled")
            return None

        logger.info(f"Scheduler: Starting pipeline {pipeline_id}")
        try:
            result = await self.orchestrator.run_pipeline(pipeline)
            logger.info(f"Scheduler: pipeline {pipeline_id} extracted {len(result.data)} records")
            return result
        except Exception as e:
            logger.error(f"Scheduler: pipeline {pipeline_id} failed - {e}")
            return None

    def add_pipeline(self, pipeline: Pipeline) -> None:
        """Register a pipeline under its own schedule"""
        if pipeline.schedule is None:
            raise InvalidPipelineError(
                f"Pipeline {pipeline.id} has no schedule",
                context={"pipeline_id": pipeline.id}
            )
        # Jobs added before start() are queued, and the queue does not honor replace_existing
        self.remove_pipeline(pipeline.id)
        self.pipelines[pipeline.id] = pipeline
        self.scheduler.add_job(
            self.run_pipeline_job,
            trigger=build_trigger(pipeline.schedule),
            args=[pipeline.id],
            id=pipeline.id,
            replace_existing=True
        )
        logger.info(
            f"Scheduled pipeline {pipeline.id} ({pipeline.schedule.frequency} at {pipeline.schedule.at})"
        )

    def remove_pipeline(self, pipeline_id: str) -> None:
        if self.pipelines.pop(pipeline_id, None) is not None:
            self.scheduler.remove_job(pipeline_id)

    def scheduled_ids(self) -> List[str]:
        return [job.id for job in self.scheduler.get_jobs()]

    def start(self):
        """Start the scheduler"""
        self.scheduler.start()
        logger.info("Pipeline scheduler started")

    def stop(self):
        self.scheduler.shutdown()
        logger.info("Pipeline scheduler stopped")
