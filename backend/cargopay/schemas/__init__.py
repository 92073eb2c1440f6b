from .rates import WeightBracketResponse, RouteRateTableResponse, RateQuoteResponse
from .verification import VerificationInput, VerificationCreate, VerificationComplete, VerificationResponse
from .delivery_assignment import (
    DeliveryAssignmentCreate,
    DeliveryAssignmentResponse,
    DriverIdentityRequest,
    CancelDeliveryRequest,
    CompletePaymentRequest,
    PaymentReceiptResponse,
    CollectionView,
)

__all__ = [
    "WeightBracketResponse",
    "RouteRateTableResponse",
    "RateQuoteResponse",
    "VerificationInput",
    "VerificationCreate",
    "VerificationComplete",
    "VerificationResponse",
    "DeliveryAssignmentCreate",
    "DeliveryAssignmentResponse",
    "DriverIdentityRequest",
    "CancelDeliveryRequest",
    "CompletePaymentRequest",
    "PaymentReceiptResponse",
    "CollectionView",
]
