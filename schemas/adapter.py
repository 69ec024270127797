"""
Adapter descriptors: static metadata an adapter publishes about itself
"""

from typing import Optional, List, Dict, Any, Literal
from pydantic import BaseModel, Field

from core.exceptions import EndpointNotFoundError, MissingConfigError
from schemas.connector import Connector

Action = Literal["download", "upload", "sync"]


class ConfigField(BaseModel):
    name: str
    required: bool = False
    default: Any = None


class Endpoint(BaseModel):
    id: str
    description: Optional[str] = None
    supported_actions: List[Action] = Field(default_factory=lambda: ["download"])
    # http adapters
    path: Optional[str] = None
    method: Optional[Literal["GET", "POST", "PUT", "DELETE"]] = None
    # database adapters
    query_type: Optional[Literal["table", "custom"]] = None
    pagination: Optional[bool] = None


class AdapterDescriptor(BaseModel):
    """
    Describes one adapter implementation.

    Factories call validate_connector() before building an instance so that
    an unknown endpoint or a missing required config key fails before any I/O.
    """

    id: str
    name: str
    type: Literal["http", "database", "file"]
    action: List[Action] = Field(default_factory=list)
    credential_type: Literal["api_key", "oauth2", "basic"]
    config: List[ConfigField] = Field(default_factory=list)
    endpoints: List[Endpoint] = Field(default_factory=list)
    base_url: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def get_endpoint(self, endpoint_id: str) -> Endpoint:
        for endpoint in self.endpoints:
            if endpoint.id == endpoint_id:
                return endpoint
        raise EndpointNotFoundError(
            f"Endpoint {endpoint_id} not found in adapter {self.id}",
            context={"adapter_id": self.id, "endpoint_id": endpoint_id}
        )

    def resolve_config(self, connector: Connector) -> Dict[str, Any]:
        """Merge declared defaults under the connector's config, checking required keys."""
        resolved = {
            field.name: field.default
            for field in self.config
            if field.default is not None
        }
        resolved.update(connector.config)

        missing = [
            field.name for field in self.config
            if field.required and resolved.get(field.name) is None
        ]
        if missing:
            raise MissingConfigError(
                f"Missing required config for adapter {self.id}: {', '.join(missing)}",
                context={"adapter_id": self.id, "missing": missing}
            )
        return resolved

    def validate_connector(self, connector: Connector, action: Optional[Action] = None) -> Endpoint:
        """
        Check a connector against this descriptor.

        Args:
            connector: Connector about to be bound to this adapter
            action: When given, the endpoint must support it

        Returns:
            The matching endpoint

        Raises:
            EndpointNotFoundError: Unknown endpoint, or endpoint lacks the action
            MissingConfigError: A required config key is absent
        """
        endpoint = self.get_endpoint(connector.endpoint_id)
        if action and action not in endpoint.supported_actions:
            raise EndpointNotFoundError(
                f"Endpoint {endpoint.id} of adapter {self.id} does not support {action}",
                context={"adapter_id": self.id, "endpoint_id": endpoint.id, "action": action}
            )
        self.resolve_config(connector)
        return endpoint
