"""Property SQLAlchemy model — one row per vendor listing reference."""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Property(Base):
    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    reference: Mapped[str] = mapped_column(Text, unique=True, nullable=False, comment="Vendor reference number (upsert key)")

    listing_type: Mapped[str] = mapped_column(String(20), comment="Sale, Rent")
    property_type: Mapped[str] = mapped_column(String(50), comment="Apartment, Villa, Office, etc.")
    sub_community: Mapped[Optional[str]] = mapped_column(Text)
    community: Mapped[str] = mapped_column(Text, default="")
    region: Mapped[str] = mapped_column(Text)
    country: Mapped[str] = mapped_column(Text)
    agent: Mapped[Optional[list]] = mapped_column(JSON, comment="[{id, name}]")

    price: Mapped[int] = mapped_column(Integer, default=0)
    currency: Mapped[str] = mapped_column(String(3), default="AED")
    bedrooms: Mapped[Optional[int]] = mapped_column(Integer)
    bathrooms: Mapped[Optional[int]] = mapped_column(Integer)
    property_status: Mapped[Optional[str]] = mapped_column(String(20), comment="Ready, Off Plan")

    title: Mapped[str] = mapped_column(Text, default="")
    description: Mapped[Optional[str]] = mapped_column(Text)
    sqfeet_area: Mapped[Optional[int]] = mapped_column(Integer)
    sqfeet_builtup: Mapped[Optional[int]] = mapped_column(Integer)
    amenities: Mapped[Optional[str]] = mapped_column(Text, comment="Comma-separated amenity names")

    is_exclusive: Mapped[bool] = mapped_column(Boolean, default=False)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False)
    is_fitted: Mapped[bool] = mapped_column(Boolean, default=False)
    is_furnished: Mapped[bool] = mapped_column(Boolean, default=False)
    is_disabled: Mapped[bool] = mapped_column(Boolean, default=False)

    lifestyle: Mapped[Optional[str]] = mapped_column(Text)
    permit: Mapped[Optional[str]] = mapped_column(Text)
    brochure: Mapped[Optional[str]] = mapped_column(Text)
    images: Mapped[Optional[list]] = mapped_column(JSON, comment="List of image URLs")
    development: Mapped[Optional[str]] = mapped_column(Text)
    neighbourhood: Mapped[Optional[str]] = mapped_column(Text)
    sold: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_properties_property_type", "property_type"),
        Index("ix_properties_listing_type", "listing_type"),
        Index("ix_properties_community", "community"),
    )

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, reference='{self.reference}', type={self.property_type})>"
