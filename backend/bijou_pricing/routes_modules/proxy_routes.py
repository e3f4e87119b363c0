"""
Proxy Routes Module - Catalog proxy for the pricing admin

Endpoints are sync: they block on Shopify / MongoDB and FastAPI runs them in
its threadpool.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..catalog import filter_products_for_scope, parse_scope
from ..errors import UpstreamError
from ..storage import now_iso

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Catalog proxy"])


# === Pydantic Models ===

class BulkUpdateRequest(BaseModel):
    updates: List[Dict[str, Any]] = Field(default_factory=list)


class SupplementUpdateRequest(BaseModel):
    bracelets: Optional[Dict[str, Any]] = None
    necklaces: Optional[Dict[str, Any]] = None


def _upstream_failure(message: str, error: UpstreamError) -> JSONResponse:
    logger.error(f"{message} {error} {error.body or ''}")
    return JSONResponse(status_code=502, content={"error": message, "details": str(error)})


# === Endpoints ===

@router.get("/healthz", summary="Proxy liveness")
def proxy_healthz():
    return {"status": "ok"}


@router.get("/products", summary="Catalog products")
def get_products(request: Request, status: str = Query("active")):
    try:
        products = request.app.state.shopify_client.fetch_products(status)
    except UpstreamError as e:
        return _upstream_failure("Failed to load products from Shopify.", e)
    return {"products": [product.to_wire() for product in products]}


@router.post("/variants/bulk-update", summary="Update variant prices")
def bulk_update_variants(request: Request, data: BulkUpdateRequest):
    if not data.updates:
        return JSONResponse(status_code=400, content={"error": "No variant updates provided."})

    result = request.app.state.shopify_client.bulk_update(data.updates)
    return JSONResponse(status_code=207 if result.failed_count else 200, content=result.to_wire())


@router.get("/backups/{scope}", summary="Stored scope backup")
def get_backup(request: Request, scope: str):
    scope = parse_scope(scope)
    backup = request.app.state.backup_store.get(scope)
    if backup is None:
        return JSONResponse(status_code=404, content={"error": "No backup available."})
    return {"success": True, "backup": backup.to_wire()}


@router.post("/backups/{scope}", summary="Store scope backup")
def put_backup(request: Request, scope: str, payload: Optional[Dict[str, Any]] = Body(None)):
    scope = parse_scope(scope)
    backup = request.app.state.backup_store.put(scope, payload)
    return {"success": True, "backup": backup.to_wire()}


@router.post("/backups/{scope}/capture", summary="Capture scope backup from Shopify")
def capture_backup(request: Request, scope: str):
    scope = parse_scope(scope)
    try:
        products = request.app.state.shopify_client.fetch_products("active")
    except UpstreamError as e:
        return _upstream_failure("Failed to capture Shopify backup.", e)

    scoped = filter_products_for_scope(products, scope)
    backup = request.app.state.backup_store.put(scope, {
        "timestamp": now_iso(),
        "products": [product.to_wire() for product in scoped],
    })
    logger.info(f"Captured {len(scoped)} products for scope {scope.value}")
    return {"success": True, "backup": backup.to_wire()}


@router.get("/supplements", summary="Current supplement tables")
def get_supplements(request: Request):
    return {"supplements": request.app.state.supplement_store.load().to_wire()}


@router.post("/supplements", summary="Update supplement tables")
def update_supplements(request: Request, data: SupplementUpdateRequest):
    if not data.bracelets and not data.necklaces:
        return JSONResponse(status_code=400, content={"error": "No supplement updates provided."})

    tables = request.app.state.supplement_store.update(data.bracelets, data.necklaces)
    logger.info("Supplement tables updated through the proxy")
    return {"success": True, "supplements": tables.to_wire()}
