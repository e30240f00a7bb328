"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class OrderNotFoundException(BusinessException):
    def __init__(self, order_id: Optional[int] = None):
        details = {"order_id": order_id} if order_id is not None else None
        super().__init__(
            code=BusinessCode.ORDER_NOT_FOUND,
            message=f"Order not found: {order_id}",
            error_type="OrderNotFound",
            details=details,
        )


class InvalidOrderTransitionException(BusinessException):
    """非法的订单状态转换"""

    def __init__(self, current: str, target: str):
        super().__init__(
            code=BusinessCode.INVALID_ORDER_TRANSITION,
            message=f"Cannot transition order from {current} to {target}",
            error_type="InvalidOrderTransition",
            details={"from": current, "to": target},
            field="status",
        )


class ConflictingTerminalTransitionException(BusinessException):
    """终态之间的冲突转换（例如 completed -> failed），必须拒绝"""

    def __init__(self, current: str, target: str):
        super().__init__(
            code=BusinessCode.CONFLICTING_TERMINAL_TRANSITION,
            message=f"Conflicting terminal transition: order is {current}, refusing {target}",
            error_type="ConflictingTerminalTransition",
            details={"from": current, "to": target},
            field="status",
        )


class ConcurrentModificationException(BusinessException):
    """乐观锁版本校验失败"""

    def __init__(self, order_id: Optional[int], expected_version: int):
        super().__init__(
            code=BusinessCode.CONCURRENT_MODIFICATION,
            message=f"Order {order_id} was modified concurrently",
            error_type="ConcurrentModification",
            details={"order_id": order_id, "expected_version": expected_version},
        )


class DuplicateRenewalOrderException(BusinessException):
    def __init__(self, subscription_id: Optional[int], transaction_id: Optional[str]):
        super().__init__(
            code=BusinessCode.DUPLICATE_RENEWAL_ORDER,
            message=(
                f"Renewal order for subscription {subscription_id} "
                f"and transaction {transaction_id} already exists"
            ),
            error_type="DuplicateRenewalOrder",
            details={"subscription_id": subscription_id, "transaction_id": transaction_id},
        )
