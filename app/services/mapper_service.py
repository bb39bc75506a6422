"""Mapper service — normalizes vendor XML property nodes into MappedProperty records.

Handles:
- Price: nested <price><yearly>1,500,000</yearly></price> or a plain <price> → 1500000
- Photos: <photo><url>…</url></photo> → sanitized URL list
- Agent: <agent><id/><name/></agent> → [AgentRef]
- Type codes: "VH" → "Villa", unknown → "Apartment"
- Amenities: vendor codes decoded, or a default list per category when absent
- Furnished text: "Partly furnished" → fitted, "Fully Furnished" → furnished
- Offering / completion codes → listing type and status

All lookup tables live in an immutable MappingTables value passed to the
mapper, so map_to_property() is a pure function of (node, tables).
"""
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from app.core.exceptions import RecordMappingError
from app.core.logging import get_logger
from app.schemas.import_schema import RecordError
from app.schemas.property_schema import AgentRef, MappedProperty
from app.services.parser_service import extract_node, extract_value, parse_int_safe

logger = get_logger(__name__)


_DEFAULT_PROPERTY_TYPES = {
    "AP": "Apartment",
    "VH": "Villa",
    "TH": "Townhouse",
    "PH": "Penthouse",
    "OF": "Office",
    "RE": "Retail",
    "WH": "Warehouse",
    "PL": "Plot",
    "FA": "Factory",
}

_PRIVATE_AMENITY_CODES = {
    "AC": "Central A/C & Heating",
    "BA": "Balcony",
    "BK": "Built-in Kitchen Appliances",
    "BL": "View of Landmark",
    "BW": "Built-in Wardrobes",
    "CP": "Covered Parking",
    "CS": "Concierge Service",
    "LB": "Lobby in Building",
    "MR": "Maid's Room",
    "MS": "Maid Service",
    "PA": "Pets Allowed",
    "PG": "Private Garden",
    "PJ": "Private Jacuzzi",
    "PP": "Private Pool",
    "PY": "Private Gym",
    "VC": "Vastu-compliant",
    "SE": "Security",
    "SP": "Shared Pool",
    "SS": "Shared Spa",
    "ST": "Study",
    "SY": "Shared Gym",
    "VW": "View of Water",
    "WC": "Walk-in Closet",
    "CO": "Children's Pool",
    "PR": "Children's Play Area",
    "BR": "Barbecue Area",
}

_COMMERCIAL_AMENITY_CODES = {
    "CR": "Conference Room",
    "AN": "Available Networked",
    "DN": "Dining in building",
    "LB": "Lobby in Building",
    "SP": "Shared Pool",
    "SY": "Shared Gym",
    "CP": "Covered Parking",
    "VC": "Vastu-compliant",
    "PN": "Pantry",
    "MZ": "Mezzanine",
}

COMMERCIAL_DEFAULT_AMENITIES = "Central A/C,Covered Parking,Lobby in Building,Conference Room,Pantry,Security"
VILLA_DEFAULT_AMENITIES = "Private Garden,Private Pool,Covered Parking,Maid's Room,Built-in Wardrobes,Security"
APARTMENT_DEFAULT_AMENITIES = "Central A/C & Heating,Balcony,Built-in Wardrobes,Covered Parking,Shared Pool,Shared Gym,Security"


@dataclass(frozen=True)
class MappingTables:
    """Vendor code tables and defaults used by the mapper."""
    property_types: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(_DEFAULT_PROPERTY_TYPES))
    )
    default_property_type: str = "Apartment"
    commercial_codes: FrozenSet[str] = frozenset({"OF", "RE", "WH", "FA"})
    villa_codes: FrozenSet[str] = frozenset({"VH", "TH"})
    rent_offering_codes: FrozenSet[str] = frozenset({"RR", "CR"})
    private_amenity_codes: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(_PRIVATE_AMENITY_CODES))
    )
    commercial_amenity_codes: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(_COMMERCIAL_AMENITY_CODES))
    )
    commercial_amenities: str = COMMERCIAL_DEFAULT_AMENITIES
    villa_amenities: str = VILLA_DEFAULT_AMENITIES
    apartment_amenities: str = APARTMENT_DEFAULT_AMENITIES
    # Hosts whose photo URLs get host-level repairs in sanitize_image_url().
    image_hosts: FrozenSet[str] = frozenset({"zoho.nordstern.ae"})
    default_region: str = "Dubai"
    country: str = "UAE"
    currency: str = "AED"


DEFAULT_TABLES = MappingTables()


_URL_ARTIFACTS = re.compile(r"[`'\"\\]")
_SCHEME_MISSING_SLASHES = re.compile(r"^(https?):(?!//)/?")


def _repair_host(url: str, host: str) -> str:
    # "zoho.nordstern.a/e/img.jpg" → "zoho.nordstern.ae/img.jpg"
    split_host = f"{host[:-1]}/{host[-1]}"
    url = url.replace(f"://{split_host}", f"://{host}")
    # "https://zoho.nordstern.aeimg.jpg" → "https://zoho.nordstern.ae/img.jpg"
    return re.sub(rf"^(https?://{re.escape(host)})(?=[^/?#:.])", r"\1/", url)


def sanitize_image_url(raw: str, image_hosts: Optional[Iterable[str]] = None) -> str:
    """Strip feed escaping artifacts from a photo URL: `"https:\\/\\/x"` → 'https://x'.

    URLs on one of `image_hosts` also get their host repaired when the feed
    split it with a stray slash or glued the path straight onto it.
    """
    url = _URL_ARTIFACTS.sub("", raw).strip()
    url = _SCHEME_MISSING_SLASHES.sub(r"\1://", url)
    for host in DEFAULT_TABLES.image_hosts if image_hosts is None else image_hosts:
        url = _repair_host(url, host)
    return url


def parse_price(node: Any) -> int:
    """Yearly price when nested, the plain value otherwise; 0 if absent."""
    price_node = extract_node(node)
    if price_node:
        return parse_int_safe(price_node.get("yearly")) or 0
    return parse_int_safe(node) or 0


def parse_images(node: Any, tables: MappingTables = DEFAULT_TABLES) -> List[str]:
    photo = extract_node(node)
    raw_urls = photo.get("url") or []
    if not isinstance(raw_urls, list):
        raw_urls = [raw_urls]

    images = []
    for raw in raw_urls:
        url = sanitize_image_url(extract_value(raw), tables.image_hosts)
        if url:
            images.append(url)
    return images


def parse_agent(node: Any) -> Optional[List[AgentRef]]:
    agent = extract_node(node)
    if not agent:
        return None
    return [AgentRef(id=extract_value(agent.get("id")), name=extract_value(agent.get("name")))]


def parse_furnished(raw: str) -> Tuple[bool, bool]:
    """Return (is_fitted, is_furnished) from free text like 'Partly furnished'."""
    value = raw.lower()
    return "partly" in value, "fully" in value


def resolve_amenities(raw: str, type_code: str, tables: MappingTables = DEFAULT_TABLES) -> str:
    """Decode each vendor amenity code, or fall back to the default list for the category."""
    is_commercial = type_code in tables.commercial_codes

    if not raw.strip():
        if is_commercial:
            return tables.commercial_amenities
        if type_code in tables.villa_codes:
            return tables.villa_amenities
        return tables.apartment_amenities

    code_map = tables.commercial_amenity_codes if is_commercial else tables.private_amenity_codes
    codes = [code.strip() for code in raw.split(",") if code.strip()]
    # Unknown tokens, free text included, are kept as written.
    return ",".join(code_map.get(code, code) for code in codes)


def map_to_property(node: Dict[str, Any], tables: MappingTables = DEFAULT_TABLES) -> MappedProperty:
    """Map one vendor <property> node into a MappedProperty.

    Raises:
        RecordMappingError: anything went wrong; the message names the reference.
    """
    reference = extract_value(node.get("reference_number"))

    try:
        type_code = extract_value(node.get("property_type")).strip().upper()
        is_fitted, is_furnished = parse_furnished(extract_value(node.get("furnished")))
        amenities = resolve_amenities(
            extract_value(node.get("private_amenities"))
            or extract_value(node.get("commercial_amenities")),
            type_code,
            tables,
        )
        offering = extract_value(node.get("offering_type")).strip().upper()
        completion = extract_value(node.get("completion_status")).strip().lower()
        sub_community = extract_value(node.get("sub_community")) or None
        community = extract_value(node.get("community"))
        size = parse_int_safe(node.get("size"))

        return MappedProperty(
            reference=reference,
            listing_type="Rent" if offering in tables.rent_offering_codes else "Sale",
            property_type=tables.property_types.get(type_code, tables.default_property_type),
            community=community,
            sub_community=sub_community,
            region=extract_value(node.get("city")) or tables.default_region,
            country=tables.country,
            price=parse_price(node.get("price")),
            currency=tables.currency,
            bedrooms=parse_int_safe(node.get("bedroom")),
            bathrooms=parse_int_safe(node.get("bathroom")),
            property_status="Ready" if completion == "completed" else "Off Plan",
            title=extract_value(node.get("title_en")),
            description=extract_value(node.get("description_en")),
            sqfeet_area=size,
            sqfeet_builtup=size,
            amenities=amenities,
            is_fitted=is_fitted,
            is_furnished=is_furnished,
            images=parse_images(node.get("photo"), tables),
            agent=parse_agent(node.get("agent")),
            permit=extract_value(node.get("permit_number")) or None,
            development=extract_value(node.get("property_name")) or None,
            neighbourhood=sub_community or community or None,
            sold=False,
        )
    except Exception as e:
        raise RecordMappingError(
            f"Failed to map XML property {reference or 'unknown'}: {e}",
            detail={"reference": reference},
        ) from e


def map_feed(
    nodes: List[Any],
    tables: MappingTables = DEFAULT_TABLES,
) -> Tuple[List[MappedProperty], List[RecordError]]:
    """Map every feed node, collecting failures instead of stopping on them.

    A reference repeated later in the feed replaces the earlier entry; the
    replaced entry is reported as an error.
    """
    mapped: Dict[str, MappedProperty] = {}
    errors: List[RecordError] = []

    for node in nodes:
        if not isinstance(node, dict):
            errors.append(RecordError(reference="unknown", error="Malformed property entry"))
            continue

        reference = extract_value(node.get("reference_number"))
        if not reference:
            errors.append(RecordError(reference="unknown", error="Missing reference number"))
            continue

        try:
            record = map_to_property(node, tables)
        except RecordMappingError as e:
            logger.warning("Skipping property %s: %s", reference, e.message, extra={"reference": reference})
            errors.append(RecordError(reference=reference, error=e.message))
            continue

        if reference in mapped:
            # Reinsert so the surviving record keeps the position of its last occurrence.
            del mapped[reference]
            errors.append(RecordError(
                reference=reference,
                error="Duplicate reference in feed; superseded by a later entry",
            ))
        mapped[reference] = record

    return list(mapped.values()), errors


def property_to_row(record: MappedProperty) -> Dict[str, Any]:
    """Convert a MappedProperty to a dict of `properties` column values."""
    return record.model_dump()
