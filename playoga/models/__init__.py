from .coupon import Coupon
from .error_log import ErrorLog
from .payment import Payment
from .profile import Profile
from .security_log import SecurityLog
from .subscription import Subscription

__all__ = [
    "Coupon",
    "ErrorLog",
    "Payment",
    "Profile",
    "SecurityLog",
    "Subscription",
]
