"""
Runtime validation utilities for ensuring architectural contracts and data
integrity.

This module provides functions to validate:

- Repository implementations against their defined Protocols using
  @runtime_checkable.
- Dictionary data against Pydantic domain models.

The goal is to catch configuration and data errors early, when use cases
are constructed or when data crosses a store boundary.
"""

from typing import Any, Type, TypeVar
from pydantic import BaseModel, ValidationError
import logging

logger = logging.getLogger(__name__)

P = TypeVar("P")
M = TypeVar("M", bound=BaseModel)


class RepositoryValidationError(Exception):
    """Raised when repository contract validation fails"""

    pass


class DomainValidationError(Exception):
    """Raised when domain model validation fails"""

    pass


def validate_repository_protocol(
    repository: object, protocol: Type[P]
) -> None:
    """
    Validate that a repository implementation satisfies a protocol contract.

    Args:
        repository: The repository implementation to validate
        protocol: The protocol class to validate against

    Raises:
        RepositoryValidationError: If validation fails

    Example:
        >>> from storefront.repos.memory import MemoryOrderRepository
        >>> from storefront.repositories import OrderRepository
        >>> validate_repository_protocol(
        ...     MemoryOrderRepository(), OrderRepository
        ... )
    """
    if not isinstance(repository, protocol):
        error_message = (
            f"Repository {type(repository).__name__} does not implement "
            f"{protocol.__name__} protocol. Missing or incorrect methods."
        )

        logger.error(
            "Repository protocol validation failed",
            extra={
                "repository_type": type(repository).__name__,
                "protocol_name": protocol.__name__,
            },
        )

        raise RepositoryValidationError(error_message)

    logger.debug(
        "Repository protocol validation passed",
        extra={
            "repository_type": type(repository).__name__,
            "protocol_name": protocol.__name__,
        },
    )


def ensure_repository_protocol(repository: object, protocol: Type[P]) -> P:
    """
    Validate and return a repository with proper type annotation.

    This provides both runtime validation and static type checking benefits.
    """
    validate_repository_protocol(repository, protocol)
    return repository  # type: ignore[return-value]


def validate_domain_model(data: Any, model_class: Type[M]) -> M:
    """
    Validate and convert raw data (usually a database row turned into a
    dict) to a domain model.

    Raises:
        DomainValidationError: If validation fails
    """
    try:
        return model_class.model_validate(data)
    except ValidationError as e:
        logger.error(
            "Domain model validation failed",
            extra={
                "model_class": model_class.__name__,
                "validation_errors": e.errors(),
            },
        )
        raise DomainValidationError(
            f"Invalid {model_class.__name__} data: {e}"
        ) from e


# Convenience functions for common validation patterns
def ensure_order_repository(repo: object) -> Any:
    """Ensure an object satisfies the OrderRepository protocol"""
    from storefront.repositories import OrderRepository

    return ensure_repository_protocol(repo, OrderRepository)  # type: ignore[type-abstract]


def ensure_inventory_repository(repo: object) -> Any:
    """Ensure an object satisfies the InventoryRepository protocol"""
    from storefront.repositories import InventoryRepository

    return ensure_repository_protocol(repo, InventoryRepository)  # type: ignore[type-abstract]


def ensure_payment_transaction_repository(repo: object) -> Any:
    """Ensure an object satisfies the PaymentTransactionRepository protocol"""
    from storefront.repositories import PaymentTransactionRepository

    return ensure_repository_protocol(repo, PaymentTransactionRepository)  # type: ignore[type-abstract]


def ensure_admin_repository(repo: object) -> Any:
    """Ensure an object satisfies the AdminRepository protocol"""
    from storefront.repositories import AdminRepository

    return ensure_repository_protocol(repo, AdminRepository)  # type: ignore[type-abstract]


def ensure_follow_up_repository(repo: object) -> Any:
    """Ensure an object satisfies the FollowUpRepository protocol"""
    from storefront.repositories import FollowUpRepository

    return ensure_repository_protocol(repo, FollowUpRepository)  # type: ignore[type-abstract]


def ensure_payment_gateway(gateway: object) -> Any:
    """Ensure an object satisfies the PaymentGateway protocol"""
    from storefront.repositories import PaymentGateway

    return ensure_repository_protocol(gateway, PaymentGateway)  # type: ignore[type-abstract]


def ensure_identity_service(service: object) -> Any:
    """Ensure an object satisfies the IdentityService protocol"""
    from storefront.repositories import IdentityService

    return ensure_repository_protocol(service, IdentityService)  # type: ignore[type-abstract]
