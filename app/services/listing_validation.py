"""
Field validation and normalization for listing create/update requests
"""
import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from app.core.config import settings
from app.models.land_listing import LISTING_TYPES, LISTING_STATUSES

TITLE_MAX_LENGTH = 200
WHATSAPP_PATTERN = re.compile(r'^\d{10,15}$')

# Descriptive names accepted for the stored land types
TYPE_ALIASES = {
    'residential-plot': 'land-res',
    'commercial-land': 'land-comm',
}

# Request field -> model attribute
LIST_FIELDS = {
    'amenities': 'amenities',
    'verificationChecklist': 'verification_checklist',
    'documentsAvailable': 'documents_available',
}


@dataclass
class ValidationResult:
    """Normalized fields keyed by model attribute, or the violations found"""
    data: Dict[str, Any] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def format_price(price_num: float) -> str:
    """Display form of a numeric price, e.g. 'KES 850,000'"""
    if float(price_num).is_integer():
        return f"KES {int(price_num):,}"
    return f"KES {price_num:,.2f}"


def parse_price_number(value: Any) -> Optional[float]:
    """
    Parse a numeric price from a number or a string such as '850000',
    '850,000' or 'KES 850,000'. Returns None when it is not a number.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        cleaned = re.sub(r'(?i)kes|ksh|,|\s', '', str(value))
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    if not math.isfinite(number):
        return None
    return number


def normalize_type(value: Any) -> Optional[str]:
    """Canonical land type for ``value``, or None if it is not one"""
    if value is None:
        return None
    candidate = str(value).strip().lower()
    candidate = TYPE_ALIASES.get(candidate, candidate)
    return candidate if candidate in LISTING_TYPES else None


def parse_list_field(value: Any) -> List[str]:
    """
    Accept a list or a JSON-encoded list. Anything unparseable becomes an
    empty list.
    """
    if value is None:
        return []
    if isinstance(value, str):
        if not value.strip():
            return []
        try:
            value = json.loads(value)
        except ValueError:
            return []
    if not isinstance(value, (list, tuple)):
        return []
    items = []
    for item in value:
        if isinstance(item, (str, int, float)) and not isinstance(item, bool):
            text = str(item).strip()
            if text:
                items.append(text)
    return items


def _is_absolute_url(value: str) -> bool:
    if not (value.startswith('http://') or value.startswith('https://')):
        return False
    return bool(urlparse(value).netloc)


def _text(raw: Dict[str, Any], key: str) -> Optional[str]:
    value = raw.get(key)
    if value is None:
        return None
    return str(value).strip()


def _validate_images(value: Any, errors: List[str]) -> Optional[List[str]]:
    if isinstance(value, str):
        try:
            value = json.loads(value) if value.strip() else []
        except ValueError:
            errors.append("images must be a list of URLs")
            return None
    if not isinstance(value, (list, tuple)):
        errors.append("images must be a list of URLs")
        return None
    urls = []
    for item in value:
        if not isinstance(item, str) or not _is_absolute_url(item.strip()):
            errors.append(f"Image must be a valid URL: {item}")
            continue
        urls.append(item.strip())
    return urls


def validate_listing_fields(raw: Dict[str, Any], partial: bool = False) -> ValidationResult:
    """
    Validate a raw request field map.

    With ``partial=True`` (updates) only the fields present in ``raw`` are
    validated and returned; absent fields stay untouched. Every violation is
    collected before returning.
    """
    result = ValidationResult()
    data, errors = result.data, result.errors

    def present(key):
        return key in raw and raw[key] is not None

    # title
    if present('title') or not partial:
        title = _text(raw, 'title')
        if not title:
            errors.append("Title is required")
        elif len(title) > TITLE_MAX_LENGTH:
            errors.append(f"Title cannot exceed {TITLE_MAX_LENGTH} characters")
        else:
            data['title'] = title

    # location
    if present('location') or not partial:
        location = _text(raw, 'location')
        if not location:
            errors.append("Location is required")
        else:
            data['location'] = location.lower()

    # type
    if present('type') or not partial:
        raw_type = _text(raw, 'type')
        if not raw_type:
            errors.append("Land type is required")
        else:
            listing_type = normalize_type(raw_type)
            if listing_type is None:
                errors.append(f"{raw_type} is not a valid land type")
            else:
                data['type'] = listing_type

    # status
    if present('status') and _text(raw, 'status'):
        status = _text(raw, 'status').lower()
        if status not in LISTING_STATUSES:
            errors.append(f"{status} is not a valid status")
        else:
            data['status'] = status
    elif not partial:
        data['status'] = 'available'

    # priceNum
    price_num = None
    if present('priceNum') or not partial:
        price_num = parse_price_number(raw.get('priceNum'))
        if price_num is None:
            errors.append("priceNum must be a number")
        elif price_num < 0:
            errors.append("priceNum must be a non-negative number")
            price_num = None
        else:
            data['price_num'] = price_num

    # price display string, regenerated when it carries no digits
    price = _text(raw, 'price')
    if price and re.search(r'\d', price):
        data['price'] = price
    elif price_num is not None:
        data['price'] = format_price(price_num)
    elif present('price'):
        # Rebuilt from the stored priceNum by the caller
        data['price'] = None

    # plotSize
    if present('plotSize') or not partial:
        plot_size = _text(raw, 'plotSize')
        if not plot_size:
            errors.append("Plot size is required")
        else:
            data['plot_size'] = plot_size

    if present('titleType'):
        data['title_type'] = _text(raw, 'titleType')
    elif not partial:
        data['title_type'] = ''

    if present('description'):
        data['description'] = _text(raw, 'description')
    elif not partial:
        data['description'] = ''

    # whatsapp
    whatsapp = _text(raw, 'whatsapp')
    if whatsapp:
        whatsapp = re.sub(r'[\s\-]', '', whatsapp).lstrip('+')
        if not WHATSAPP_PATTERN.match(whatsapp):
            errors.append("Please enter a valid phone number (10-15 digits)")
        else:
            data['whatsapp'] = whatsapp
    elif not partial:
        data['whatsapp'] = settings.DEFAULT_WHATSAPP

    # mapLink
    if present('mapLink'):
        map_link = _text(raw, 'mapLink')
        if not map_link:
            data['map_link'] = None
        elif not _is_absolute_url(map_link):
            errors.append("Map link must be a valid URL")
        else:
            data['map_link'] = map_link

    # list fields
    for request_key, attribute in LIST_FIELDS.items():
        if present(request_key):
            data[attribute] = parse_list_field(raw[request_key])
        elif not partial:
            data[attribute] = []

    # explicit keep-list of existing images (updates only)
    if partial and present('images'):
        images = _validate_images(raw['images'], errors)
        if images is not None:
            data['images'] = images

    return result
