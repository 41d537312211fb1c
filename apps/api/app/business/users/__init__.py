from app.business.users.models import User

__all__ = ["User"]
