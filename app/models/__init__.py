"""SQLAlchemy models for the property importer."""
from app.models.property_model import Property

__all__ = [
    "Property",
]
