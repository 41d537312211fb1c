from app.business.payments.models import Payment, PaymentStatus, PaymentType

__all__ = ["Payment", "PaymentStatus", "PaymentType"]
