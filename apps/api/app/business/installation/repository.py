from __future__ import annotations

from app.business.installation.models import InstallationRequest
from app.platform.security.repository import BaseRepository


class InstallationRequestRepository(BaseRepository):
    model = InstallationRequest
    assignee_column = "assigned_technician_id"
