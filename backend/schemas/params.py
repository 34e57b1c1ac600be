"""
Query parameter models for /api/* endpoints.

Key features:
- frozen=True: Immutable after normalization
- populate_by_name=True: Accept both alias (camelCase) and field name
- extra='ignore': Unknown params (cache busters like ?t=...) are ignored
"""

from pydantic import BaseModel, ConfigDict, Field


class BaseParamsModel(BaseModel):
    """Base model for all API param schemas."""
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        populate_by_name=True,
        extra='ignore',
    )


class DashboardParams(BaseParamsModel):
    """Params for /dashboard/* snapshot endpoints."""

    refresh: bool = Field(
        default=False,
        description="Bypass the snapshot cache and rebuild now"
    )


class DocumentsParams(BaseParamsModel):
    """Params for /documents."""

    collection_id: str = Field(
        alias='collectionId',
        min_length=1,
        description="Appwrite collection id ('collection-' prefix allowed)"
    )
    all_pages: bool = Field(
        default=True,
        alias='all',
        description="Page through the whole collection (false = first page only)"
    )
