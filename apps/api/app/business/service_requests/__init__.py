from app.business.service_requests.models import ServiceRequest, ServiceRequestStatus, ServiceRequestType

__all__ = ["ServiceRequest", "ServiceRequestStatus", "ServiceRequestType"]
