from app.business.franchise.models import Franchise, FranchiseAgent

__all__ = ["Franchise", "FranchiseAgent"]
