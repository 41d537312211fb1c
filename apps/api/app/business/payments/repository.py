from __future__ import annotations

from app.business.payments.models import Payment
from app.platform.security.repository import BaseRepository


class PaymentRepository(BaseRepository):
    model = Payment
