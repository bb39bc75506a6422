"""Mapped property record — the internal shape of one normalized feed entry.

Produced by the mapper from a vendor XML node and consumed by the storage
layer. Field names follow the `properties` table columns.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class AgentRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str = ""


class MappedProperty(BaseModel):
    """Canonical property record — strongly typed, vendor-agnostic."""
    model_config = ConfigDict(frozen=True)

    reference: str = Field(min_length=1)
    listing_type: Literal["Sale", "Rent"] = "Sale"
    property_type: str = "Apartment"
    community: str = ""
    sub_community: Optional[str] = None
    region: str = "Dubai"
    country: str = "UAE"
    price: int = 0
    currency: str = "AED"
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    property_status: Literal["Ready", "Off Plan"] = "Off Plan"
    title: str = ""
    description: str = ""
    sqfeet_area: Optional[int] = None
    sqfeet_builtup: Optional[int] = None
    amenities: str = ""
    is_fitted: bool = False
    is_furnished: bool = False
    images: List[str] = []
    agent: Optional[List[AgentRef]] = None
    permit: Optional[str] = None
    development: Optional[str] = None
    neighbourhood: Optional[str] = None
    sold: bool = False
