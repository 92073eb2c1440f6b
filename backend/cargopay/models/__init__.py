from .verification import VerificationRecord, Route, WeightType, Classification, CargoService
from .delivery_assignment import DeliveryAssignment, DeliveryStatus, PaymentMethod
from .payment_session import PaymentSession

__all__ = [
    "VerificationRecord",
    "Route",
    "WeightType",
    "Classification",
    "CargoService",
    "DeliveryAssignment",
    "DeliveryStatus",
    "PaymentMethod",
    "PaymentSession",
]
