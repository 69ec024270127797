"""
Pydantic schemas for the pipeline data model.

Modules:
    auth: Credential records (api_key, oauth2, basic) and the Vault mapping
    connector: Connector configuration, pagination policy, filters, sorts
    pipeline: Pipeline descriptor, error/rate-limit policies, events, results
    adapter: Adapter descriptors used by adapter factories
"""

__all__ = [
    "ApiKeyAuth",
    "OAuth2Auth",
    "BasicAuth",
    "AuthConfig",
    "Vault",
    "Connector",
    "Pagination",
    "Pipeline",
    "PipelineEvent",
    "PipelineResult",
    "ErrorHandling",
    "RateLimiting",
    "Schedule",
    "EventType",
    "RunState",
    "AdapterDescriptor",
]
