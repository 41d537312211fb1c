from app.business.catalog.models import Product

__all__ = ["Product"]
