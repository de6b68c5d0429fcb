"""
Shipping address normalisation.

Checkout forms post ``line1``/``line2``/``postal_code`` while stored rows use
``address``/``address_line_2``/``zipcode``. Both shapes collapse into one
:class:`CanonicalAddress`; the storage-convention key wins when both exist.
"""
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

from checkout.errors import CheckoutValidationError

REQUIRED_FIELDS = ('address', 'city', 'state', 'zipcode', 'country')

MISSING_FIELDS_MESSAGE = (
    'Missing required address fields: address, city, state, zipcode, '
    'and country are required'
)


@dataclass(frozen=True)
class CanonicalAddress:
    address: str
    city: str
    state: str
    zipcode: str
    country: str
    address_line_2: Optional[str] = None
    company: Optional[str] = None

    def as_record(self) -> Dict[str, Any]:
        return asdict(self)


def _pick(data: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            return value
    return ''


def normalize_address(data: Optional[Mapping[str, Any]]) -> CanonicalAddress:
    if not data:
        raise CheckoutValidationError('Missing shipping address')

    fields = {
        'address': _pick(data, 'address', 'line1'),
        'city': _pick(data, 'city'),
        'state': _pick(data, 'state'),
        'zipcode': _pick(data, 'zipcode', 'postal_code'),
        'country': _pick(data, 'country'),
    }
    if not all(fields[name] for name in REQUIRED_FIELDS):
        raise CheckoutValidationError(MISSING_FIELDS_MESSAGE)

    return CanonicalAddress(
        address_line_2=_pick(data, 'address_line_2', 'addressLine2', 'line2') or None,
        company=_pick(data, 'company') or None,
        **fields,
    )
