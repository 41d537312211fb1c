from __future__ import annotations

from app.business.service_requests.models import ServiceRequest
from app.platform.security.repository import BaseRepository


class ServiceRequestRepository(BaseRepository):
    model = ServiceRequest
    assignee_column = "assigned_to_id"
