"""
Temporal decorators for turning repository protocols into activities and
workflow proxies.

- ``temporal_activity_registration`` wraps the protocol's async methods of
  a concrete repository as Temporal activities, for the worker.
- ``temporal_workflow_proxy`` implements the same protocol inside a
  workflow by calling those activities by name.

Both sides discover methods the same way, so activity names always match.
"""

import functools
import inspect
import logging
from datetime import timedelta
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Optional,
    Type,
    TypeVar,
    get_type_hints,
)

from pydantic import TypeAdapter
from temporalio import activity, workflow
from temporalio.common import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_protocol_class(cls: type) -> bool:
    return bool(getattr(cls, "_is_protocol", False))


def _discover_protocol_methods(
    cls_hierarchy: tuple[type, ...],
) -> Dict[str, Any]:
    """
    Find the public async methods to wrap, by name.

    Methods declared on Protocol classes in the hierarchy win. If no
    Protocol is present, every public async method in the hierarchy is
    used instead.
    """
    protocol_methods: Dict[str, Any] = {}
    all_methods: Dict[str, Any] = {}

    for base_class in cls_hierarchy:
        if base_class is object:
            continue
        is_protocol = _is_protocol_class(base_class)
        for name, member in base_class.__dict__.items():
            if name.startswith("_") or not inspect.iscoroutinefunction(member):
                continue
            all_methods.setdefault(name, member)
            if is_protocol:
                protocol_methods.setdefault(name, member)

    methods = protocol_methods or all_methods
    logger.debug(
        "Discovered methods to wrap",
        extra={
            "class_hierarchy": [c.__name__ for c in cls_hierarchy],
            "methods": sorted(methods),
            "from_protocol": bool(protocol_methods),
        },
    )
    return methods


def temporal_activity_registration(
    activity_prefix: str,
) -> Callable[[Type[T]], Type[T]]:
    """
    Class decorator that registers protocol methods as Temporal activities.

    Activity names are ``{activity_prefix}.{method_name}``. The method
    implementation is looked up on the decorated class, so subclasses of
    concrete repositories get their real behaviour.

    Example:
        @temporal_activity_registration("storefront.order_repo.postgresql")
        class TemporalPostgreSQLOrderRepository(PostgreSQLOrderRepository):
            pass
    """

    def decorator(cls: Type[T]) -> Type[T]:
        wrapped_methods = []

        for name, declared in _discover_protocol_methods(cls.__mro__).items():
            implementation = getattr(cls, name)
            activity_name = f"{activity_prefix}.{name}"

            def create_wrapper_method(
                original_method: Callable[..., Any],
                declared_method: Callable[..., Any],
                method_name: str,
            ) -> Callable[..., Any]:
                @functools.wraps(original_method)
                async def wrapper_method(*args: Any, **kwargs: Any) -> Any:
                    return await original_method(*args, **kwargs)

                wrapper_method.__name__ = method_name
                wrapper_method.__qualname__ = f"{cls.__name__}.{method_name}"
                # Protocol annotations drive argument decoding in the worker
                wrapper_method.__annotations__ = dict(
                    getattr(declared_method, "__annotations__", {})
                )
                return wrapper_method

            wrapper = create_wrapper_method(implementation, declared, name)
            setattr(cls, name, activity.defn(name=activity_name)(wrapper))
            wrapped_methods.append(name)

        logger.info(
            f"Registered {cls.__name__} methods as activities",
            extra={
                "wrapped_methods": wrapped_methods,
                "activity_prefix": activity_prefix,
            },
        )
        return cls

    return decorator


def _return_adapter(method: Callable[..., Any]) -> Optional[TypeAdapter]:
    """A TypeAdapter that rebuilds the declared return type, if any.

    Activity results reach the workflow as plain JSON values; the adapter
    turns them back into models, lists of models, Optionals and so on.
    """
    try:
        hints = get_type_hints(method)
    except (NameError, TypeError):
        return None
    annotation = hints.get("return")
    if annotation is None or annotation is type(None):
        return None
    return TypeAdapter(annotation)


def temporal_workflow_proxy(
    activity_base: str,
    default_timeout_seconds: int = 30,
    fail_fast_methods: Optional[Iterable[str]] = None,
    maximum_attempts: int = 5,
    non_retryable_error_types: Optional[Iterable[str]] = None,
) -> Callable[[Type[T]], Type[T]]:
    """
    Class decorator that implements a protocol inside a workflow by calling
    activities ``{activity_base}.{method_name}``.

    Args:
        activity_base: activity name prefix, as given to
            ``temporal_activity_registration``
        default_timeout_seconds: start-to-close timeout for every call
        fail_fast_methods: methods whose activity runs exactly once; use
            this for calls with external side effects that are not
            idempotent
        maximum_attempts: attempts for all other methods
        non_retryable_error_types: exception class names that stop retries

    Only positional arguments are supported.
    """
    fail_fast = set(fail_fast_methods or [])
    non_retryable = list(non_retryable_error_types or [])

    fail_fast_retry_policy = RetryPolicy(
        initial_interval=timedelta(seconds=1),
        maximum_attempts=1,
        backoff_coefficient=1.0,
        maximum_interval=timedelta(seconds=1),
    )
    bounded_retry_policy = RetryPolicy(
        initial_interval=timedelta(seconds=1),
        backoff_coefficient=2.0,
        maximum_interval=timedelta(seconds=30),
        maximum_attempts=maximum_attempts,
        non_retryable_error_types=non_retryable,
    )

    def decorator(cls: Type[T]) -> Type[T]:
        wrapped_methods = []

        for method_name, original_method in _discover_protocol_methods(
            cls.__mro__
        ).items():
            adapter = _return_adapter(original_method)
            retry_policy = (
                fail_fast_retry_policy
                if method_name in fail_fast
                else bounded_retry_policy
            )

            def create_workflow_method(
                method_name: str,
                adapter: Optional[TypeAdapter],
                retry_policy: RetryPolicy,
                original_method: Any,
            ) -> Callable[..., Any]:
                activity_name = f"{activity_base}.{method_name}"

                @functools.wraps(original_method)
                async def workflow_method(
                    self: Any, *args: Any, **kwargs: Any
                ) -> Any:
                    if kwargs:
                        raise ValueError(
                            f"kwargs not supported in workflow proxy "
                            f"for {method_name}. Use positional args."
                        )

                    workflow.logger.debug(
                        f"Workflow: Calling {method_name} activity",
                        extra={
                            "activity_name": activity_name,
                            "args_count": len(args),
                        },
                    )
                    raw_result = await workflow.execute_activity(
                        activity_name,
                        args=list(args),
                        start_to_close_timeout=timedelta(
                            seconds=default_timeout_seconds
                        ),
                        retry_policy=retry_policy,
                    )

                    if adapter is None or raw_result is None:
                        return raw_result
                    return adapter.validate_python(raw_result)

                return workflow_method

            setattr(
                cls,
                method_name,
                create_workflow_method(
                    method_name, adapter, retry_policy, original_method
                ),
            )
            wrapped_methods.append(method_name)

        def __init__(proxy_self: Any) -> None:
            proxy_self.activity_timeout = timedelta(
                seconds=default_timeout_seconds
            )
            proxy_self.retry_policy = bounded_retry_policy

        setattr(cls, "__init__", __init__)

        logger.info(
            f"Created workflow proxy {cls.__name__}",
            extra={
                "wrapped_methods": wrapped_methods,
                "activity_base": activity_base,
                "fail_fast_methods": sorted(fail_fast),
            },
        )
        return cls

    return decorator
