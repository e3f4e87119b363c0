"""
Bijou Pricing - Error taxonomy

- ValidationError: malformed or incomplete payload (400, never retried)
- AuthError: missing or mismatched webhook signature (401)
- UpstreamError: catalog API answered non-2xx (status/body kept for the caller)
- NoBackupError: restore requested on an empty slot (handled as a no-op)
"""

from typing import Optional


class PricingError(Exception):
    """Base class for every error raised by the pricing engine"""
    status_code = 500


class ValidationError(PricingError):
    status_code = 400


class UnknownScopeError(ValidationError):
    def __init__(self, scope):
        super().__init__(f"Unknown scope: {scope!r}")
        self.scope = scope


class AuthError(PricingError):
    status_code = 401


class UpstreamError(PricingError):
    """Catalog API returned a non-2xx response"""
    status_code = 502

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body


class NoBackupError(PricingError):
    status_code = 404

    def __init__(self, scope: str):
        super().__init__(f"No backup available for scope {scope!r}")
        self.scope = scope
