"""Per-request instrumentation for scoped EC2 clients."""

import logging
import threading
from collections import Counter
from typing import Any, Callable, Dict, Optional, Tuple

from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

# Called as hook(operation_name, request, response, error) once per API call
InstrumentationHook = Callable[
    [str, Optional[Dict[str, Any]], Optional[Dict[str, Any]], Optional[BaseException]], None
]

_REQUEST_CONTEXT_KEY = "splitrole_request"
_OPERATION_CONTEXT_KEY = "splitrole_operation"


class InstrumentationHandlers:
    """
    botocore event handlers that report every call to an instrumentation hook.

    A failing hook is logged and otherwise ignored so it cannot change the
    outcome of the call it observes.

    botocore only emits ``after-call``/``after-call-error`` once a request has
    been built, so a call rejected earlier (for example by parameter
    validation) stays pending until ``report_unsent_failure`` is called.
    """

    def __init__(self, hook: InstrumentationHook):
        self.hook = hook
        self._pending = threading.local()

    def register(self, client: Any) -> None:
        """Register the handlers on a boto3 client's event system."""
        service_id = client.meta.service_model.service_id.hyphenize()
        events = client.meta.events
        events.register(f"before-parameter-build.{service_id}", self.before_parameter_build)
        events.register(f"after-call.{service_id}", self.after_call)
        events.register(f"after-call-error.{service_id}", self.after_call_error)

    def before_parameter_build(self, params: Dict[str, Any], model: Any, context: Dict, **kwargs):
        context[_REQUEST_CONTEXT_KEY] = dict(params)
        context[_OPERATION_CONTEXT_KEY] = model.name
        self._pending.call = (model.name, context[_REQUEST_CONTEXT_KEY])

    def after_call(
        self, http_response: Any, parsed: Dict[str, Any], model: Any, context: Dict, **kwargs
    ):
        self._pending.call = None
        error = None
        if http_response is not None and http_response.status_code >= 300:
            error = ClientError(parsed, model.name)
        self._notify(model.name, context.get(_REQUEST_CONTEXT_KEY), parsed, error)

    def after_call_error(self, exception: BaseException, context: Dict, **kwargs):
        self._pending.call = None
        operation_name = context.get(_OPERATION_CONTEXT_KEY, "unknown")
        self._notify(operation_name, context.get(_REQUEST_CONTEXT_KEY), None, exception)

    def report_unsent_failure(self, error: BaseException) -> bool:
        """
        Report a call on this thread that failed before botocore sent it.

        Calls already reported through ``after-call`` or ``after-call-error``
        are not reported again.

        Args:
            error: Exception the client method raised

        Returns:
            True if the hook was called
        """
        pending = getattr(self._pending, "call", None)
        self._pending.call = None
        if pending is None:
            return False

        operation_name, request = pending
        self._notify(operation_name, request, None, error)
        return True

    def _notify(
        self,
        operation_name: str,
        request: Optional[Dict[str, Any]],
        response: Optional[Dict[str, Any]],
        error: Optional[BaseException],
    ) -> None:
        try:
            self.hook(operation_name, request, response, error)
        except Exception as e:
            logger.warning(f"Instrumentation hook failed for {operation_name}: {e}")


def register_instrumentation(client: Any, hook: InstrumentationHook) -> InstrumentationHandlers:
    """
    Attach an instrumentation hook to a boto3 client.

    Args:
        client: boto3 client to instrument
        hook: Callable invoked with (operation_name, request, response, error)

    Returns:
        The registered handlers
    """
    handlers = InstrumentationHandlers(hook)
    handlers.register(client)
    return handlers


class RequestRecorder:
    """Default instrumentation hook: logs each call and counts outcomes."""

    def __init__(self, name: str = "ec2"):
        self.name = name
        self._counts: Counter = Counter()
        self._lock = threading.Lock()

    def __call__(
        self,
        operation_name: str,
        request: Optional[Dict[str, Any]],
        response: Optional[Dict[str, Any]],
        error: Optional[BaseException],
    ) -> None:
        outcome = "error" if error is not None else "success"
        with self._lock:
            self._counts[(operation_name, outcome)] += 1

        request_id = (response or {}).get("ResponseMetadata", {}).get("RequestId")
        if error is not None:
            logger.debug(f"[{self.name}] {operation_name} failed: {type(error).__name__}: {error}")
        else:
            logger.debug(f"[{self.name}] {operation_name} succeeded (request id {request_id})")

    def snapshot(self) -> Dict[Tuple[str, str], int]:
        """Return a copy of the (operation, outcome) counts."""
        with self._lock:
            return dict(self._counts)

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()
