"""
Pipeline engine: extract from a source adapter, load into a target adapter.

Modules:
    base: Adapter contracts (SourceAdapter, TargetAdapter, PageOptions, PageResult)
    registry: Adapter factory registry keyed by adapter id
    credentials: Vault access with OAuth2 token refresh
    timing: Delay primitive and request-rate limiter
    retry: Fixed-interval retry policy for fetches and uploads
    events: Pipeline event sink
    runner: Orchestrator and the per-run state machine
    scheduler: APScheduler integration for scheduled pipelines

Subpackages:
    extractors: Paginated fetch loop (offset and cursor pagination)
    loaders: Batched upload loop

Architecture:
    A run resolves the source adapter and its credential, pages through
    the source until a stop condition fires, optionally transforms the
    records, then uploads them to the target in batches. Every connected
    adapter is disconnected before the run returns or raises.

Usage:
    from ingestion.runner import Orchestrator
    from schemas.pipeline import Pipeline

Example:
    orchestrator = Orchestrator(vault, {"my_adapter": my_adapter_factory})

    result = await orchestrator.run_pipeline(Pipeline(
        id="contacts-sync",
        source=source_connector,
        target=target_connector,
        logging=print,
    ))

    print(f"Extracted {len(result.data)} records")

Error Handling:
    Configuration and credential errors come from core.exceptions and always
    propagate. Adapter errors are retried per the pipeline's error_handling
    policy and re-raised unchanged when fail_on_error is set.
"""

__all__ = [
    "Orchestrator",
    "PipelineRun",
    "PipelineScheduler",
    "PaginatedExtractor",
    "BatchLoader",
    "CredentialStore",
    "CredentialResolver",
    "AdapterRegistry",
    "RateLimiter",
    "RetryPolicy",
    "EventLog",
    "SourceAdapter",
    "TargetAdapter",
]
