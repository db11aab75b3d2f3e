# module backend.orders.models
from enum import Enum


class OrderStatus(str, Enum):
    AWAITING_PAYMENT = "awaiting_payment"
    PAID = "paid"
    CANCELLED = "cancelled"
    FAILED = "failed"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class DeliveryMethod(str, Enum):
    STANDARD = "standard"
    EXPRESS = "express"


TERMINAL_ORDER_STATUSES = {OrderStatus.PAID.value, OrderStatus.CANCELLED.value, OrderStatus.FAILED.value}
