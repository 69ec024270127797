"""
Pipeline event sink: timestamps lifecycle events and forwards them to the caller
"""

from typing import List, Optional, Callable, Any
import logging

from schemas.pipeline import PipelineEvent, EventType

logger = logging.getLogger(__name__)

_LEVELS = {
    EventType.ERROR.value: logging.ERROR,
    EventType.INFO.value: logging.DEBUG,
}


class EventLog:
    """
    Append-only event log for one pipeline run.

    Every event is mirrored to the Python logger and, when the pipeline
    supplied one, to its logging callback. A callback that raises is
    reported and otherwise ignored.
    """

    def __init__(self, pipeline_id: str, consumer: Optional[Callable[[PipelineEvent], Any]] = None):
        self.pipeline_id = pipeline_id
        self.consumer = consumer
        self.events: List[PipelineEvent] = []

    def emit(self, type: EventType, message: str, data_count: Optional[int] = None) -> PipelineEvent:
        event = PipelineEvent(type=type, message=message, data_count=data_count)
        self.events.append(event)

        logger.log(
            _LEVELS.get(event.type, logging.INFO),
            f"[{self.pipeline_id}] {event.type}: {message}"
            + (f" (count={data_count})" if data_count is not None else "")
        )

        if self.consumer is not None:
            try:
                self.consumer(event)
            except Exception:
                logger.exception(f"[{self.pipeline_id}] Event consumer failed")
        return event

    def start(self, message: str) -> PipelineEvent:
        return self.emit(EventType.START, message)

    def extract(self, message: str, data_count: Optional[int] = None) -> PipelineEvent:
        return self.emit(EventType.EXTRACT, message, data_count)

    def transform(self, message: str, data_count: Optional[int] = None) -> PipelineEvent:
        return self.emit(EventType.TRANSFORM, message, data_count)

    def load(self, message: str, data_count: Optional[int] = None) -> PipelineEvent:
        return self.emit(EventType.LOAD, message, data_count)

    def error(self, message: str) -> PipelineEvent:
        return self.emit(EventType.ERROR, message)

    def complete(self, message: str) -> PipelineEvent:
        return self.emit(EventType.COMPLETE, message)

    def info(self, message: str) -> PipelineEvent:
        return self.emit(EventType.INFO, message)

    def of_type(self, type: EventType) -> List[PipelineEvent]:
        return [event for event in self.events if event.type == type]
