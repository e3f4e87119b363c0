"""
Webhook Routes Module - Shopify product updates, theme variant selections
"""

import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ..webhooks import SIGNATURE_HEADER, record_variant_selection

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Webhooks"])


@router.get("/healthz", summary="Liveness")
async def healthz():
    return {"ok": True}


@router.post("/webhooks/product-update", summary="Propagate base variant price")
async def product_update(request: Request):
    """The raw body is needed as sent: the HMAC is computed over it"""
    raw_body = await request.body()
    handler = request.app.state.product_update_handler
    logger.debug(
        f"product-update topic={request.headers.get('X-Shopify-Topic')} "
        f"shop={request.headers.get('X-Shopify-Shop-Domain')}"
    )
    status_code, body = await run_in_threadpool(
        handler.handle, raw_body, request.headers.get(SIGNATURE_HEADER)
    )
    return JSONResponse(status_code=status_code, content=body)


@router.post("/webhooks/theme-variant-selection", summary="Record storefront variant selection")
async def theme_variant_selection(request: Request):
    raw_body = await request.body()
    try:
        payload = json.loads(raw_body or b"null")
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Malformed payload"})

    status_code, body = record_variant_selection(request.app.state.event_store, payload)
    return JSONResponse(status_code=status_code, content=body)


@router.get("/webhooks/theme-variant-selection", summary="List recorded selections")
async def list_variant_selections(request: Request):
    events = request.app.state.event_store.list()
    return {"events": events, "count": len(events)}


@router.delete("/webhooks/theme-variant-selection", summary="Clear recorded selections")
async def clear_variant_selections(request: Request):
    store = request.app.state.event_store
    cleared = len(store)
    store.clear()
    logger.info(f"Cleared {cleared} variant selection events")
    return {"cleared": cleared}
