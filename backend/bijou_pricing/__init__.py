"""
Bijou Pricing - variant pricing and matching engine

Modules:
- supplements.py - surcharge tables per product family
- rounding.py - luxury price rounding and supplement rounding
- matcher.py - option text → canonical chain keys, match contexts, base prices
- generators.py - price matrices per family (bracelet, necklace, ring, hand chain, set)
- orchestrator.py - preview / apply / backup / restore over the in-memory catalog
- webhooks.py - Shopify product-update propagation and variant-selection events
- routes_modules/ - FastAPI routers (webhooks, catalog proxy)
"""

__version__ = "1.0.0"
