"""
Permission Spender

Covers a required amount by consuming allowance across several permissions,
oldest grant first.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence

# Module import: the registry client itself imports this package's models
from ...providers import spend_permissions
from ..recovery.errors import InputValidationError, InsufficientAllowanceError
from .models import SpendPermission, SpendPlan

logger = logging.getLogger(__name__)


class PermissionSpender:
    def __init__(
        self,
        registry: Optional[spend_permissions.SpendPermissionProvider] = None,
        *,
        clock: Callable[[], float] = time.time,
    ):
        self._registry = registry
        self._clock = clock

    @property
    def registry(self) -> spend_permissions.SpendPermissionProvider:
        return self._registry or spend_permissions.get_spend_permission_provider()

    async def build_spend_calls(
        self,
        permissions: Sequence[SpendPermission],
        required_amount: int,
    ) -> SpendPlan:
        """Plan spend calls totalling ``required_amount``.

        Each permission contributes ``min(still needed, live remaining spend)``.
        Remaining spend is read from the registry for every permission, since the
        static allowance ignores what earlier spends consumed this period. When
        the permissions run out first, the plan carries the shortfall instead
        of raising.
        """
        if required_amount <= 0:
            raise InputValidationError("Amount must be greater than 0", field="amount")

        now_ms = int(self._clock() * 1000)
        plan = SpendPlan()
        remaining = required_amount

        for permission in permissions:
            if remaining <= 0:
                break

            if not permission.is_active(now_ms):
                logger.debug("Skipping expired permission %s", permission.permission_hash)
                continue

            status = await self.registry.status(permission)
            if not status.usable:
                logger.debug(
                    "Skipping permission %s (remaining=%d, revoked=%s)",
                    permission.permission_hash, status.remaining_spend, status.is_revoked,
                )
                continue

            contribution = min(remaining, status.remaining_spend)
            spend_call = await self.registry.prepare_spend_call(permission, contribution, status)
            plan.spend_calls.append(spend_call)
            plan.contributions.append(contribution)
            remaining -= contribution

        plan.shortfall = max(remaining, 0)
        logger.info(
            "Spend plan for %d: %d call(s), shortfall %d",
            required_amount, len(plan.spend_calls), plan.shortfall,
        )
        return plan

    @staticmethod
    def require_sufficient(plan: SpendPlan) -> SpendPlan:
        """Turn a shortfall into a terminal error."""
        if not plan.is_sufficient:
            raise InsufficientAllowanceError(plan.shortfall)
        return plan
