"""
Pydantic schemas for connectors: one side (source or target) of a pipeline
"""

from typing import Optional, List, Dict, Any, Literal, Union, Callable
from pydantic import BaseModel, Field, ConfigDict, field_validator


class Filter(BaseModel):
    field: str
    operator: str
    value: str


class FilterGroup(BaseModel):
    op: Literal["AND", "OR"]
    filters: List[Union[Filter, "FilterGroup"]] = Field(default_factory=list)


class Sort(BaseModel):
    type: Literal["asc", "desc"]
    field: str


class Transformation(BaseModel):
    """
    One declarative transformation step.

    The step vocabulary (concat, renameKey, uppercase, ...) is interpreted by
    the transform collaborator, not by the engine; a callable is accepted as
    a custom step.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    type: Union[str, Callable[..., Any]]
    options: Dict[str, Any] = Field(default_factory=dict)


class Pagination(BaseModel):
    """Pagination policy requested by the connector"""

    items_per_page: Optional[int] = Field(None, alias="itemsPerPage", gt=0)
    # Initial offset, kept as a string: numeric for offset paging, opaque for cursors
    page_offset_key: Optional[str] = Field(None, alias="pageOffsetKey")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("page_offset_key", mode="before")
    @classmethod
    def stringify_offset(cls, v):
        if v is None:
            return v
        return str(v)


class Connector(BaseModel):
    """
    Configuration describing one endpoint of a pipeline.

    Connectors are frozen: a run never mutates its source or target.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    adapter_id: str
    endpoint_id: str
    credential_id: str
    config: Dict[str, Any] = Field(default_factory=dict)
    fields: List[str] = Field(default_factory=list)
    filters: List[Union[Filter, FilterGroup]] = Field(default_factory=list)
    transform: Optional[List[Transformation]] = None
    sort: List[Sort] = Field(default_factory=list)
    # Total items to fetch; engine ceiling applies when unset
    limit: Optional[int] = Field(None, ge=0)
    pagination: Optional[Pagination] = None
    # Maximum extraction wall-clock time in milliseconds
    timeout: Optional[int] = Field(None, gt=0)
    debug: bool = False

    @property
    def items_per_page(self) -> Optional[int]:
        return self.pagination.items_per_page if self.pagination else None

    @property
    def page_offset_key(self) -> Optional[str]:
        return self.pagination.page_offset_key if self.pagination else None


FilterGroup.model_rebuild()
