from app.business.installation.models import InstallationRequest, InstallationRequestStatus, OrderType

__all__ = ["InstallationRequest", "InstallationRequestStatus", "OrderType"]
