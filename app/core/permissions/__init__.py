"""
Spend permissions: data model, allocation and spend planning.
"""

from .models import (
    Call,
    PermissionState,
    PermissionStatus,
    SpendCall,
    SpendPermission,
    SpendPlan,
)
from .allocator import PermissionAllocator, PermissionRequestError, PermissionSigner
from .spender import PermissionSpender

__all__ = [
    "Call",
    "PermissionState",
    "PermissionStatus",
    "SpendCall",
    "SpendPermission",
    "SpendPlan",
    "PermissionAllocator",
    "PermissionRequestError",
    "PermissionSigner",
    "PermissionSpender",
]
