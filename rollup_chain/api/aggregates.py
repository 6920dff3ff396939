"""
Continuous aggregate API endpoints.

Lists derived aggregates, runs create / drop over the whole registry,
refreshes single levels and serves on-the-fly rollups of a level to a
coarser interval.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import logging
from datetime import datetime

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, model_validator

from rollup_chain.api.deps import DbConnection, DbSession, Registry
from rollup_chain.config import get_settings
from rollup_chain.errors import UnknownAggregateError
from rollup_chain.models import AggregateDefinition, RefreshPolicy
from rollup_chain.services.lifecycle import (
    create_continuous_aggregates,
    drop_continuous_aggregates,
    refresh_aggregate,
    refresh_aggregates,
)
from rollup_chain.services.rollup import get_rollup

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/aggregates", tags=["aggregates"])

# Query parameters of the rollup endpoint that are not group filters.
_ROLLUP_PARAMS = {"interval", "start", "end"}


# ---------------------------------------------------------------------------
# Pydantic request / response schemas
# ---------------------------------------------------------------------------


class AggregateOut(BaseModel):
    """Schema for one derived continuous aggregate.

    Attributes:
        family: Aggregate family (scope) name.
        timeframe: Timeframe name.
        view: Materialized view name.
        source: Relation the view reads from.
        query: SELECT body of the view.
        refresh_policy: Automatic refresh schedule, if any.
    """

    family: str
    timeframe: str
    view: str
    source: str
    query: str
    refresh_policy: RefreshPolicy | None = None

    @classmethod
    def from_definition(cls, definition: AggregateDefinition) -> "AggregateOut":
        return cls(
            family=definition.family,
            timeframe=definition.timeframe.name,
            view=definition.view_name,
            source=definition.source,
            query=definition.query,
            refresh_policy=definition.refresh_policy,
        )


class TimeWindow(BaseModel):
    """Optional refresh window; both bounds or neither.

    Attributes:
        start: Inclusive window start.
        end: Exclusive window end.
    """

    start: datetime | None = None
    end: datetime | None = None

    @model_validator(mode="after")
    def _check_bounds(self) -> "TimeWindow":
        if (self.start is None) != (self.end is None):
            raise ValueError("start and end must be given together")
        if self.start is not None and self.end is not None and self.start >= self.end:
            raise ValueError("start must be before end")
        return self


class CreateRequest(BaseModel):
    """Schema for the create request body.

    Attributes:
        with_data: Populate views on creation; WITH_DATA setting if unset.
    """

    with_data: bool | None = None


class RefreshAllRequest(BaseModel):
    """Schema for the bulk refresh request body.

    Attributes:
        timeframes: Timeframes to refresh in every family; all if unset.
    """

    timeframes: list[str] | None = None


class ViewsResponse(BaseModel):
    """Schema for lifecycle responses.

    Attributes:
        views: View names touched, in execution order.
    """

    views: list[str]


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("", response_model=list[AggregateOut])
async def list_aggregates(registry: Registry) -> list[AggregateOut]:
    """List every derived continuous aggregate in creation order."""
    return [AggregateOut.from_definition(definition) for definition in registry.create_order()]


@router.post("/create", response_model=ViewsResponse)
async def create_aggregates(
    conn: DbConnection,
    registry: Registry,
    body: CreateRequest | None = None,
) -> ViewsResponse:
    """Create every view and refresh policy; existing views are kept."""
    with_data = body.with_data if body is not None else None
    if with_data is None:
        with_data = get_settings().WITH_DATA
    views = await create_continuous_aggregates(conn, registry, with_data=with_data)
    logger.info("Created %d continuous aggregates", len(views))
    return ViewsResponse(views=views)


@router.post("/drop", response_model=ViewsResponse)
async def drop_aggregates(conn: DbConnection, registry: Registry) -> ViewsResponse:
    """Drop every view, dependents first."""
    views = await drop_continuous_aggregates(conn, registry)
    logger.info("Dropped %d continuous aggregates", len(views))
    return ViewsResponse(views=views)


@router.post("/refresh", response_model=ViewsResponse)
async def refresh_all(
    conn: DbConnection,
    registry: Registry,
    body: RefreshAllRequest | None = None,
) -> ViewsResponse:
    """Refresh every family, finest level first.

    Raises:
        HTTPException: 404 if a family does not derive a requested timeframe.
    """
    timeframes = body.timeframes if body is not None else None
    try:
        views = await refresh_aggregates(conn, registry, timeframes)
    except UnknownAggregateError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ViewsResponse(views=views)


@router.get("/{family}", response_model=list[AggregateOut])
async def get_family(family: str, registry: Registry) -> list[AggregateOut]:
    """List one family's chain, finest level first.

    Raises:
        HTTPException: 404 if the family is unknown.
    """
    try:
        chain = registry.chain(family)
    except UnknownAggregateError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return [AggregateOut.from_definition(definition) for definition in chain]


@router.post("/{family}/{timeframe}/refresh", response_model=ViewsResponse)
async def refresh(
    family: str,
    timeframe: str,
    conn: DbConnection,
    registry: Registry,
    window: TimeWindow | None = None,
) -> ViewsResponse:
    """Refresh one level, optionally within a window.

    Raises:
        HTTPException: 404 if the level was never derived.
        HTTPException: 422 if the window is malformed.
    """
    window = window or TimeWindow()
    try:
        view = await refresh_aggregate(conn, registry, family, timeframe, window.start, window.end)
    except UnknownAggregateError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return ViewsResponse(views=[view])


@router.get("/{family}/{timeframe}/rollup")
async def rollup(
    family: str,
    timeframe: str,
    interval: str,
    request: Request,
    db: DbSession,
    registry: Registry,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    """Re-aggregate one level into *interval* buckets.

    Query parameters other than ``interval``, ``start`` and ``end`` filter
    on the level's group columns.

    Raises:
        HTTPException: 404 if the level was never derived.
        HTTPException: 400 on invalid filters or window.
    """
    if (start is None) != (end is None):
        raise HTTPException(status_code=400, detail="start and end must be given together")
    filters = {
        key: value for key, value in request.query_params.items() if key not in _ROLLUP_PARAMS
    }
    try:
        rows = await get_rollup(
            db,
            registry,
            family,
            timeframe,
            interval,
            filters=filters,
            start=start,
            end=end,
        )
    except UnknownAggregateError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {
        "family": family,
        "timeframe": timeframe,
        "interval": interval,
        "rows": rows,
    }
