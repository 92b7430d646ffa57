"""Service layer exports."""

from .token_cipher import TokenCipherService
from .token_manager import TokenLifecycleManager, TokenStatus
from .token_service import AuthStart, CallbackResult, TokenService

__all__ = [
    "AuthStart",
    "CallbackResult",
    "TokenCipherService",
    "TokenLifecycleManager",
    "TokenService",
    "TokenStatus",
]
