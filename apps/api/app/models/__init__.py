from app.business.catalog.models import Product
from app.business.franchise.models import Franchise, FranchiseAgent
from app.business.installation.models import InstallationRequest
from app.business.payments.models import Payment
from app.business.service_requests.models import ServiceRequest
from app.business.subscription.models import Subscription
from app.business.users.models import User
from app.platform.action_history.models import ActionHistoryEntry

__all__ = [
	"ActionHistoryEntry",
	"Franchise",
	"FranchiseAgent",
	"InstallationRequest",
	"Payment",
	"Product",
	"ServiceRequest",
	"Subscription",
	"User",
]
