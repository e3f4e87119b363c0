from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
from pydantic import ValidationError as PayloadValidationError
from pymongo import MongoClient
import logging
from contextlib import asynccontextmanager
from typing import Optional

from bijou_pricing.config import Settings
from bijou_pricing.errors import PricingError
from bijou_pricing.event_store import VariantSelectionStore
from bijou_pricing.routes_modules import proxy_router, webhook_router
from bijou_pricing.shopify_client import ShopifyAdminClient, redact
from bijou_pricing.storage import (
    InMemoryBackupStore,
    InMemorySupplementStore,
    MongoBackupStore,
    MongoSupplementStore,
)
from bijou_pricing.webhooks import ProductUpdateHandler

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=logging.DEBUG if settings.debug_webhook else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def create_app(
    settings: Optional[Settings] = None,
    shopify_client=None,
    supplement_store=None,
    backup_store=None,
    event_store: Optional[VariantSelectionStore] = None,
) -> FastAPI:
    """
    Application factory: uvicorn server:create_app --factory

    Collaborators can be injected (tests); otherwise they are built from
    settings: MongoDB stores when MONGO_URL is set, in-memory stores without.
    """
    settings = (settings or Settings.from_env()).validate()
    configure_logging(settings)

    mongo_client = None
    if settings.mongo_url and (supplement_store is None or backup_store is None):
        mongo_client = MongoClient(settings.mongo_url)
        db = mongo_client[settings.db_name]
        supplement_store = supplement_store or MongoSupplementStore(db)
        backup_store = backup_store or MongoBackupStore(db)
        logger.info(f"Using MongoDB database {settings.db_name}")

    supplement_store = supplement_store or InMemorySupplementStore()
    backup_store = backup_store or InMemoryBackupStore()
    event_store = event_store or VariantSelectionStore()
    shopify_client = shopify_client or ShopifyAdminClient(
        settings.shopify_store_domain,
        settings.shopify_access_token,
        settings.shopify_api_version,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if mongo_client is not None:
            mongo_client.close()

    app = FastAPI(title="Bijou Pricing API", lifespan=lifespan)
    app.state.settings = settings
    app.state.shopify_client = shopify_client
    app.state.supplement_store = supplement_store
    app.state.backup_store = backup_store
    app.state.event_store = event_store
    app.state.product_update_handler = ProductUpdateHandler(
        settings.shopify_webhook_secret,
        shopify_client,
        supplement_store.load,
    )

    @app.exception_handler(PricingError)
    async def pricing_error_handler(request: Request, exc: PricingError):
        logger.warning(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    @app.exception_handler(PayloadValidationError)
    async def payload_error_handler(request: Request, exc: PayloadValidationError):
        logger.warning(f"{request.method} {request.url.path}: invalid payload ({exc.error_count()} errors)")
        return JSONResponse(status_code=400, content={"error": "Invalid payload"})

    app.include_router(webhook_router)
    app.include_router(proxy_router, prefix=settings.proxy_base_path)

    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    logger.info(
        f"Bijou Pricing API ready (shop={settings.shopify_store_domain}, "
        f"secret={redact(settings.shopify_webhook_secret)}, proxy={settings.proxy_base_path})"
    )
    return app
