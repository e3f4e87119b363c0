"""
Bijou Pricing - Settings

Environment variables, optionally loaded from backend/.env (existing
environment wins).
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

BACKEND_DIR = Path(__file__).resolve().parent.parent


def _split(value: str) -> List[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


@dataclass
class Settings:
    shopify_store_domain: Optional[str] = None
    shopify_access_token: Optional[str] = None
    shopify_webhook_secret: Optional[str] = None
    shopify_api_version: str = "2024-04"
    proxy_base_path: str = "/api/shopify"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    mongo_url: Optional[str] = None
    db_name: str = "bijou_pricing"
    debug_webhook: bool = False
    pricing_proxy_url: Optional[str] = None

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Settings":
        load_dotenv(env_file or BACKEND_DIR / ".env", override=False)
        env = os.environ
        base_path = env.get("SHOPIFY_PROXY_BASE_PATH", "/api/shopify").rstrip("/")
        return cls(
            shopify_store_domain=env.get("SHOPIFY_STORE_DOMAIN") or env.get("VITE_SHOPIFY_STORE_DOMAIN"),
            shopify_access_token=env.get("SHOPIFY_ACCESS_TOKEN"),
            shopify_webhook_secret=env.get("SHOPIFY_WEBHOOK_SECRET"),
            shopify_api_version=env.get("SHOPIFY_API_VERSION", "2024-04"),
            proxy_base_path=base_path,
            cors_origins=_split(env.get("CORS_ORIGINS", "*")) or ["*"],
            mongo_url=env.get("MONGO_URL") or None,
            db_name=env.get("DB_NAME", "bijou_pricing"),
            debug_webhook=env.get("DEBUG_WEBHOOK", "") == "1",
            pricing_proxy_url=env.get("PRICING_PROXY_URL") or None,
        )

    def missing(self) -> List[str]:
        required = {
            "SHOPIFY_STORE_DOMAIN": self.shopify_store_domain,
            "SHOPIFY_ACCESS_TOKEN": self.shopify_access_token,
            "SHOPIFY_WEBHOOK_SECRET": self.shopify_webhook_secret,
        }
        return [name for name, value in required.items() if not value]

    def validate(self) -> "Settings":
        missing = self.missing()
        if missing:
            raise RuntimeError(f"Missing env vars: {', '.join(missing)}")
        return self
