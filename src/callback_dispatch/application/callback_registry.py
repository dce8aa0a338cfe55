"""Registry of compiled callback plans keyed by callback id."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from callback_dispatch.application.plan_compiler import compile_callback_plans
from callback_dispatch.domain.descriptions import CallbackDescription
from callback_dispatch.domain.errors import CallbackCompilationError
from callback_dispatch.domain.plans import CallbackExecutionPlan, CallbackPlan

logger = logging.getLogger(__name__)


class CallbackRegistry:
    """Compile each callback description once and bind plans to invocations."""

    def __init__(self) -> None:
        self._plans: dict[str, tuple[CallbackPlan, ...]] = {}

    def register(
        self,
        callback_id: str,
        description: CallbackDescription | Mapping[str, Any],
    ) -> tuple[CallbackPlan, ...]:
        """Compile and remember plans for `callback_id`, replacing earlier ones."""

        plans = tuple(compile_callback_plans(description, callback_id))
        if not plans:
            logger.warning("Callback '%s' compiled to zero plans.", callback_id)
        self._plans[callback_id] = plans
        return plans

    def plans_for(self, callback_id: str) -> tuple[CallbackPlan, ...]:
        """Return all plans compiled for `callback_id`."""

        plans = self._plans.get(callback_id)
        if plans is None:
            raise CallbackCompilationError(f"Callback '{callback_id}' is not registered.")
        return plans

    def plan_for(self, callback_id: str, method: str | None = None) -> CallbackPlan:
        """Return the plan for `callback_id`, narrowed by HTTP method when ambiguous."""

        plans = self.plans_for(callback_id)
        if method is not None:
            wanted = method.strip().upper()
            plans = tuple(plan for plan in plans if plan.method == wanted)
        if not plans:
            raise CallbackCompilationError(
                f"Callback '{callback_id}' has no plan for method '{method}'."
            )
        if len(plans) > 1:
            raise CallbackCompilationError(
                f"Callback '{callback_id}' has {len(plans)} plans; specify a method."
            )
        return plans[0]

    def execution_plan(
        self,
        callback_id: str,
        parameters: Mapping[str, Any],
        *,
        body_parameter_name: str | None = None,
        method: str | None = None,
    ) -> CallbackExecutionPlan:
        """Bind invocation parameters to the registered plan of `callback_id`."""

        if body_parameter_name is not None and body_parameter_name not in parameters:
            raise CallbackCompilationError(
                f"Callback '{callback_id}' body parameter '{body_parameter_name}' "
                "is missing from parameters."
            )
        return CallbackExecutionPlan(
            callback_id=callback_id,
            plan=self.plan_for(callback_id, method),
            body_parameter_name=body_parameter_name,
            parameters=parameters,
        )

    @property
    def callback_ids(self) -> list[str]:
        return list(self._plans)


__all__ = ["CallbackRegistry"]
