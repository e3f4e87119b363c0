"""
Bijou Pricing Routes Modules

- webhook_routes: Shopify product-update webhook, theme variant selections, /healthz
- proxy_routes: catalog proxy (products, bulk variant updates, backups, supplements)

Usage:
    from bijou_pricing.routes_modules import webhook_router, proxy_router

    app.include_router(webhook_router)
    app.include_router(proxy_router, prefix=settings.proxy_base_path)

Collaborators are read from app.state (see server.create_app).
"""

from .proxy_routes import router as proxy_router
from .webhook_routes import router as webhook_router

__all__ = [
    'proxy_router',
    'webhook_router',
]
