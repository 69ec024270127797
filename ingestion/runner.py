# ============================================================================
# File: ingestion/runner.py
# Description: Pipeline orchestrator driven by an explicit run state machine
# ============================================================================
"""
Pipeline Runner - Orchestrates Extract, Transform, Load for one pipeline.

This module provides:
- Orchestrator: adapter registry, credential store and the run_pipeline entry point
- PipelineRun: one run as a linear state machine with optional source and
  target branches

    START -> [RESOLVE_SOURCE -> CONNECT_SOURCE -> EXTRACT -> TRANSFORM -> ONLOAD]
          -> [PRESEND_HOOK -> RESOLVE_TARGET -> CONNECT_TARGET -> UPLOAD_BATCHES -> ONUPLOAD]
          -> COMPLETE

HALTED is reached when onbeforesend returns False and FAILED on any error
that escapes a state. Cleanup (disconnecting every connected adapter) runs on
every exit path and never masks the primary outcome.
"""

import inspect
from typing import Dict, Any, List, Optional, Callable, Awaitable, Union
import logging

import httpx

from core.exceptions import (
    ConfigurationError,
    InvalidPipelineError,
    TargetAdapterNotFoundError,
    UploadNotSupportedError
)
from ingestion.base import AdapterFactory, supports_download, supports_upload
from ingestion.credentials import CredentialResolver, CredentialStore
from ingestion.events import EventLog
from ingestion.extractors.paginated import PaginatedExtractor
from ingestion.loaders.batch_loader import BatchLoader
from ingestion.registry import AdapterRegistry
from schemas.auth import Vault
from schemas.connector import Connector
from schemas.pipeline import ErrorHandling, Pipeline, PipelineResult, RunState

logger = logging.getLogger(__name__)

# (connector, records) -> records; applies the connector's declarative transform steps
Transformer = Callable[[Connector, List[Any]], Union[List[Any], Awaitable[List[Any]]]]

TERMINAL_STATES = {RunState.COMPLETE, RunState.HALTED, RunState.FAILED}


class PipelineRun:
    """
    State for a single pipeline execution.

    Each non-terminal state has one handler that performs the state's work
    and returns the next state.
    """

    def __init__(self, orchestrator: "Orchestrator", pipeline: Pipeline):
        self.orchestrator = orchestrator
        self.pipeline = pipeline
        self.events = EventLog(pipeline.id, pipeline.logging)
        self.error_handling = pipeline.error_handling or ErrorHandling()
        self.state = RunState.START

        # Records after extract/transform; this is what the run returns
        self.records: List[Any] = []
        # Records handed to the target, possibly replaced by onbeforesend
        self.outgoing: List[Any] = []

        self.source_adapter: Any = None
        self.target_adapter: Any = None
        self.source_connected = False
        self.target_connected = False

        self._handlers: Dict[RunState, Callable[[], Awaitable[RunState]]] = {
            RunState.START: self._start,
            RunState.RESOLVE_SOURCE: self._resolve_source,
            RunState.CONNECT_SOURCE: self._connect_source,
            RunState.EXTRACT: self._extract,
            RunState.TRANSFORM: self._transform,
            RunState.ONLOAD: self._onload,
            RunState.PRESEND_HOOK: self._presend_hook,
            RunState.RESOLVE_TARGET: self._resolve_target,
            RunState.CONNECT_TARGET: self._connect_target,
            RunState.UPLOAD_BATCHES: self._upload_batches,
            RunState.ONUPLOAD: self._onupload,
        }

    def validate(self) -> None:
        if self.pipeline.source is None and self.pipeline.data is None:
            raise InvalidPipelineError(
                "Pipeline must have either a source or data",
                context={"pipeline_id": self.pipeline.id}
            )

    async def execute(self) -> PipelineResult:
        """
        Drive the state machine to a terminal state.

        Raises:
            InvalidPipelineError: Before the run starts, if there is nothing to extract
            ConfigurationError / AuthenticationError: Always propagated
            Exception: Adapter errors that exhausted retries under fail_on_error
        """
        self.validate()
        self.events.start("Pipeline started")

        try:
            while self.state not in TERMINAL_STATES:
                next_state = await self._handlers[self.state]()
                logger.debug(f"[{self.pipeline.id}] {self.state.value} -> {next_state.value}")
                self.state = next_state

            if self.state == RunState.COMPLETE:
                self.events.complete("Pipeline finished")

        except Exception as e:
            logger.error(f"[{self.pipeline.id}] Pipeline failed in state {self.state.value}: {e}")
            self.state = RunState.FAILED
            self.events.error(f"Pipeline failed: {e}")
            raise

        finally:
            await self._cleanup()

        return PipelineResult(data=self.records)

    # --------------------------------------------------
    # START
    # --------------------------------------------------
    async def _start(self) -> RunState:
        if self.pipeline.source is not None:
            return RunState.RESOLVE_SOURCE

        # Inline data is neither paginated nor rate limited
        self.records = list(self.pipeline.data)
        self.events.extract("Using provided data", len(self.records))
        return self._after_extract()

    def _after_extract(self) -> RunState:
        return RunState.PRESEND_HOOK if self.pipeline.target is not None else RunState.COMPLETE

    # --------------------------------------------------
    # SOURCE BRANCH
    # --------------------------------------------------
    async def _resolve_source(self) -> RunState:
        source = self.pipeline.source
        factory = self.orchestrator.registry.get(source.adapter_id)
        auth = await self.orchestrator.resolver.resolve(source)

        adapter = factory(source, auth)
        if not supports_download(adapter):
            raise ConfigurationError(
                f"Download not supported by adapter {source.adapter_id}",
                context={"adapter_id": source.adapter_id}
            )
        self.source_adapter = adapter
        return RunState.CONNECT_SOURCE

    async def _connect_source(self) -> RunState:
        await _maybe_call(self.source_adapter, "connect")
        self.source_connected = True
        self.events.info("Connected to source adapter")
        return RunState.EXTRACT

    async def _extract(self) -> RunState:
        extractor = PaginatedExtractor(
            connector=self.pipeline.source,
            adapter=self.source_adapter,
            error_handling=self.error_handling,
            rate_limiting=self.pipeline.rate_limiting,
            events=self.events
        )
        self.records = await extractor.fetch_all()
        return RunState.TRANSFORM

    async def _transform(self) -> RunState:
        source = self.pipeline.source
        transformer = self.orchestrator.transformer

        if source.transform:
            if transformer is None:
                self.events.info(
                    f"Connector {source.id} declares {len(source.transform)} transform steps "
                    f"but no transformer is configured; skipping"
                )
            else:
                result = transformer(source, self.records)
                if inspect.isawaitable(result):
                    result = await result
                self.records = list(result)
                self.events.transform(
                    f"Applied {len(source.transform)} transform steps",
                    len(self.records)
                )

        self.events.extract("Data extraction complete", len(self.records))
        return RunState.ONLOAD

    async def _onload(self) -> RunState:
        if self.pipeline.onload is not None:
            self.pipeline.onload(self.records)
        return self._after_extract()

    # --------------------------------------------------
    # TARGET BRANCH
    # --------------------------------------------------
    async def _presend_hook(self) -> RunState:
        self.outgoing = self.records

        if self.pipeline.onbeforesend is not None:
            result = self.pipeline.onbeforesend(self.records)
            if result is False:
                self.events.complete("Pipeline halted by onbeforesend")
                return RunState.HALTED
            if isinstance(result, list):
                self.outgoing = result

        return RunState.RESOLVE_TARGET

    async def _resolve_target(self) -> RunState:
        target = self.pipeline.target
        factory = self.orchestrator.registry.get(
            target.adapter_id,
            error_cls=TargetAdapterNotFoundError,
            role="Target adapter"
        )
        auth = await self.orchestrator.resolver.resolve(target)

        adapter = factory(target, auth)
        if not supports_upload(adapter):
            raise UploadNotSupportedError(
                f"Upload not supported by adapter {target.adapter_id}",
                context={"adapter_id": target.adapter_id}
            )
        self.target_adapter = adapter
        return RunState.CONNECT_TARGET

    async def _connect_target(self) -> RunState:
        await _maybe_call(self.target_adapter, "connect")
        self.target_connected = True
        self.events.info("Connected to target adapter")
        return RunState.UPLOAD_BATCHES

    async def _upload_batches(self) -> RunState:
        loader = BatchLoader(
            adapter=self.target_adapter,
            error_handling=self.error_handling,
            events=self.events,
            batch_size=self.pipeline.target.items_per_page
        )
        await loader.load(self.outgoing)
        return RunState.ONUPLOAD

    async def _onupload(self) -> RunState:
        if self.pipeline.onupload is not None:
            self.pipeline.onupload()
        return RunState.COMPLETE

    # --------------------------------------------------
    # CLEANUP
    # --------------------------------------------------
    async def _cleanup(self) -> None:
        """Disconnect source then target; failures are logged, never raised"""
        for role, adapter, connected in (
            ("Source", self.source_adapter, self.source_connected),
            ("Target", self.target_adapter, self.target_connected),
        ):
            if adapter is None or not connected:
                continue
            try:
                await _maybe_call(adapter, "disconnect")
                self.events.info(f"{role} adapter disconnected")
            except Exception as e:
                self.events.error(f"Connection cleanup failed: {e}")

        self.source_connected = False
        self.target_connected = False


async def _maybe_call(adapter: Any, method: str) -> None:
    """Await an optional lifecycle method if the adapter defines one"""
    func = getattr(adapter, method, None)
    if callable(func):
        result = func()
        if inspect.isawaitable(result):
            await result


class Orchestrator:
    """
    Entry point for running pipelines against a vault and a set of adapters.

    Usage:
        orchestrator = Orchestrator(vault, {"stripe": stripe_factory})
        result = await orchestrator.run_pipeline(pipeline)
        print(len(result.data))
    """

    def __init__(
        self,
        vault: Vault,
        adapters: Optional[Dict[str, AdapterFactory]] = None,
        transformer: Optional[Transformer] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.registry = AdapterRegistry(adapters)
        self.store = CredentialStore(vault, http_client=http_client)
        self.resolver = CredentialResolver(self.registry, self.store)
        self.transformer = transformer

    def register_adapter(self, adapter_id: str, factory: AdapterFactory) -> None:
        """Register an adapter factory under adapter_id"""
        self.registry.register(adapter_id, factory)

    async def get_credentials(self, connector: Connector):
        """Resolve (and refresh if needed) the credential for connector"""
        return await self.resolver.resolve(connector)

    async def run_pipeline(self, pipeline: Pipeline) -> PipelineResult:
        """
        Run pipeline once.

        Returns:
            PipelineResult whose data is the records after extract/transform
        """
        logger.info(f"Running pipeline {pipeline.id}")
        run = PipelineRun(self, pipeline)
        result = await run.execute()
        logger.info(
            f"Pipeline {pipeline.id} finished in state {run.state.value} "
            f"with {len(result.data)} records"
        )
        return result
