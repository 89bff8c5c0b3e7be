"""Upstream API adapters.

Available adapters:
    ProcareClient — Procare Connect parent API (bearer or query-string token)
"""

from src.childcare.adapters.procare import (
    ActivityPage,
    AuthResult,
    ProcareClient,
    authenticate,
)

__all__ = [
    "ActivityPage",
    "AuthResult",
    "ProcareClient",
    "authenticate",
]
