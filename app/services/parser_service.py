"""Parser service — XML feed parsing and tolerant field extraction.

The vendor feed is a `<list>` of `<property>` elements. Parsed elements are
converted into the "maybe-wrapped" node shape used throughout the importer:

- a leaf element becomes its trimmed text
- an element with children becomes ``{tag: [child, ...]}``, every child value
  being a list even when the tag occurs once

Fields are then read with extract_value() / extract_node() / parse_int_safe(),
which accept a scalar, a list (one or more wrapping layers) or nothing at all,
so callers never check shapes themselves.

Parsing goes through defusedxml; entity expansion and external DTDs are
rejected, never resolved.
"""
import re
from typing import Any, Dict, List, Optional, Union

from defusedxml import DefusedXmlException
from defusedxml.ElementTree import ParseError, fromstring

from app.core.exceptions import EmptyFeedError, ParsingError
from app.core.logging import get_logger

logger = get_logger(__name__)

Node = Union[str, Dict[str, List["Node"]]]

FEED_ROOT_TAG = "list"
PROPERTY_TAG = "property"

_NON_DIGITS = re.compile(r"\D")


def _unwrap(node: Any) -> Any:
    while isinstance(node, list):
        if not node:
            return None
        node = node[0]
    return node


def extract_value(node: Any) -> str:
    """Return the first scalar in a possibly list-wrapped node, or ''."""
    value = _unwrap(node)
    if not value or isinstance(value, dict):
        return ""
    return value if isinstance(value, str) else str(value)


def extract_node(node: Any) -> Dict[str, Any]:
    """Return the first nested element in a possibly list-wrapped node, or {}."""
    value = _unwrap(node)
    return value if isinstance(value, dict) else {}


def parse_int_safe(node: Any) -> Optional[int]:
    """Strip every non-digit and parse: 'AED 1,250,000' → 1250000, '' → None."""
    digits = _NON_DIGITS.sub("", extract_value(node))
    if not digits:
        return None
    return int(digits)


def _normalize_tag(tag: str) -> str:
    if "}" in tag:
        tag = tag.rsplit("}", 1)[1]
    return tag.lower()


def _element_to_node(element) -> Node:
    children = list(element)
    if not children:
        return (element.text or "").strip()

    node: Dict[str, List[Node]] = {}
    for child in children:
        node.setdefault(_normalize_tag(child.tag), []).append(_element_to_node(child))
    return node


def parse_feed(raw: Union[str, bytes]) -> List[Node]:
    """Parse a vendor feed document and return its property nodes.

    Raises:
        ParsingError: malformed XML, forbidden XML constructs, or a root
            element other than <list>.
        EmptyFeedError: the feed holds no <property> entries.
    """
    try:
        root = fromstring(raw)
    except (ParseError, DefusedXmlException) as e:
        raise ParsingError(f"Failed to parse XML data: {e}") from e

    root_tag = _normalize_tag(root.tag)
    if root_tag != FEED_ROOT_TAG:
        raise ParsingError(
            f"Unexpected root element <{root_tag}>, expected <{FEED_ROOT_TAG}>"
        )

    node = _element_to_node(root)
    properties = node.get(PROPERTY_TAG, []) if isinstance(node, dict) else []
    if not properties:
        raise EmptyFeedError("No properties found in XML data")

    logger.debug("Parsed %d property entries from feed", len(properties))
    return properties
