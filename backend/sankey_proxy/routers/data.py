"""Warehouse-backed endpoints: filter categories and Sankey flow rows."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from sankey_proxy.models.auth_models import Session
from sankey_proxy.models.data_models import CategoryRecord, FlowRecord, SankeyRequest
from sankey_proxy.rate_limit import DATA_QUERY_LIMIT, limiter
from sankey_proxy.services.auth import get_gateway, require_session
from sankey_proxy.services.warehouse import QueryExecutionError, WarehouseGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["data"])


@router.get("/filters/categories", response_model=list[CategoryRecord])
@limiter.limit(DATA_QUERY_LIMIT)
async def filter_categories(
    request: Request,
    session: Session = Depends(require_session),
    gateway: WarehouseGateway = Depends(get_gateway),
):
    """Distinct category triples used to populate the filter panel."""
    try:
        return await gateway.list_categories()
    except QueryExecutionError:
        logger.exception("Error fetching filter categories")
        return JSONResponse(status_code=500, content={"error": "Failed to fetch filter categories"})


@router.post("/data/sankey", response_model=list[FlowRecord])
@limiter.limit(DATA_QUERY_LIMIT)
async def sankey_data(
    body: SankeyRequest,
    request: Request,
    session: Session = Depends(require_session),
    gateway: WarehouseGateway = Depends(get_gateway),
):
    """Flow rows matching the requested filters."""
    logger.debug("Sankey query for %s with filters %s", session.user.email, body.filters.active())
    try:
        return await gateway.query_flows(body.filters)
    except QueryExecutionError:
        logger.exception("Error fetching Sankey data")
        return JSONResponse(status_code=500, content={"error": "Failed to fetch Sankey data"})
