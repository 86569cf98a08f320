from .checkout import CreateOrderRequest, ValidateCouponRequest, VerifyPaymentRequest

__all__ = [
    "CreateOrderRequest",
    "ValidateCouponRequest",
    "VerifyPaymentRequest",
]
