"""Domain public API."""

from callback_dispatch.domain.descriptions import (
    CallbackDescription,
    MediaTypeDescription,
    OperationDescription,
    ParameterDescription,
    RequestBodyDescription,
)
from callback_dispatch.domain.errors import (
    CallbackCompilationError,
    CallbackError,
    CallbackResolutionError,
    JsonPointerError,
)
from callback_dispatch.domain.json_pointer import resolve_json_pointer
from callback_dispatch.domain.models import (
    TERMINAL_CALLBACK_STATES,
    CallbackErrorType,
    CallbackRecord,
    CallbackRequest,
    CallbackResult,
    CallbackRuntimeContext,
    CallbackState,
    RetryDecision,
    RetryDecisionKind,
    VariableBag,
)
from callback_dispatch.domain.plans import (
    CallbackBodyPlan,
    CallbackExecutionPlan,
    CallbackParamPlan,
    CallbackPlan,
)
from callback_dispatch.domain.ports import (
    CallbackBodySerializer,
    CallbackQueue,
    CallbackRetryPolicy,
    CallbackSender,
    CallbackSigner,
    CallbackStore,
    CallbackUrlResolver,
)

__all__ = [
    "CallbackBodyPlan",
    "CallbackBodySerializer",
    "CallbackCompilationError",
    "CallbackDescription",
    "CallbackError",
    "CallbackErrorType",
    "CallbackExecutionPlan",
    "CallbackParamPlan",
    "CallbackPlan",
    "CallbackQueue",
    "CallbackRecord",
    "CallbackRequest",
    "CallbackResolutionError",
    "CallbackResult",
    "CallbackRetryPolicy",
    "CallbackRuntimeContext",
    "CallbackSender",
    "CallbackSigner",
    "CallbackState",
    "CallbackStore",
    "CallbackUrlResolver",
    "JsonPointerError",
    "MediaTypeDescription",
    "OperationDescription",
    "ParameterDescription",
    "RequestBodyDescription",
    "RetryDecision",
    "RetryDecisionKind",
    "TERMINAL_CALLBACK_STATES",
    "VariableBag",
    "resolve_json_pointer",
]
