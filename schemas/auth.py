"""
Pydantic schemas for credential records held in the vault
"""

from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Literal, Union, MutableMapping, Annotated
from pydantic import BaseModel, Field, ConfigDict, TypeAdapter


class BaseAuth(BaseModel):
    """Fields shared by every credential kind"""

    model_config = ConfigDict(extra="allow", validate_assignment=True)

    id: str
    name: Optional[str] = None
    provider: Optional[str] = None
    environment: Optional[Literal["production", "staging", "development"]] = None
    metadata: Optional[Dict[str, Any]] = None
    timeout: Optional[int] = None
    # ISO string or epoch number are both accepted
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True when expires_at is set and not in the future."""
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now


class ApiKeyCredentials(BaseModel):
    model_config = ConfigDict(extra="allow")

    api_key: str
    api_secret: Optional[str] = None


class ApiKeyAuth(BaseAuth):
    type: Literal["api_key"] = "api_key"
    credentials: ApiKeyCredentials


class OAuth2Credentials(BaseModel):
    model_config = ConfigDict(extra="allow", validate_assignment=True)

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    refresh_token: Optional[str] = None
    access_token: Optional[str] = None
    token_url: Optional[str] = None


class OAuth2Auth(BaseAuth):
    type: Literal["oauth2"] = "oauth2"
    credentials: OAuth2Credentials
    scopes: List[str] = Field(default_factory=list)


class BasicCredentials(BaseModel):
    model_config = ConfigDict(extra="allow")

    username: str
    password: str
    host: Optional[str] = None
    port: Optional[str] = None
    database: Optional[str] = None


class BasicAuth(BaseAuth):
    type: Literal["basic"] = "basic"
    credentials: BasicCredentials


AuthConfig = Annotated[
    Union[ApiKeyAuth, OAuth2Auth, BasicAuth],
    Field(discriminator="type")
]

# Keyed credential store. A plain dict satisfies it.
Vault = MutableMapping[str, Union[ApiKeyAuth, OAuth2Auth, BasicAuth]]


_auth_adapter = TypeAdapter(AuthConfig)


def parse_auth_config(data: Dict[str, Any]) -> Union[ApiKeyAuth, OAuth2Auth, BasicAuth]:
    """Validate a raw credential mapping into the matching AuthConfig kind."""
    return _auth_adapter.validate_python(data)
