"""
Credential Generator.

Tracking codes and handoff verification codes. Uniqueness of tracking codes
is enforced by the package store, which retries on collision.
"""

import secrets
import string
from typing import Tuple

from custody.app.core.config import settings

TRACKING_ALPHABET = string.ascii_uppercase + string.digits


def generate_tracking_code(prefix: str = None, length: int = None) -> str:
    """Return a tracking code such as ``MHB-K3ZQ9A``."""
    prefix = settings.tracking_prefix if prefix is None else prefix
    length = length or settings.tracking_code_length
    return prefix + "".join(secrets.choice(TRACKING_ALPHABET) for _ in range(length))


def generate_verification_code(length: int = None) -> str:
    """Return a numeric code of exactly ``length`` digits with no leading zero."""
    length = length or settings.verification_code_length
    floor = 10 ** (length - 1)
    return str(floor + secrets.randbelow(9 * floor))


def generate_handoff_codes(length: int = None) -> Tuple[str, str]:
    """
    Draw the warehouse and delivery codes for a high-value package.
    
    The two are drawn independently; the delivery code is redrawn until it
    differs from the warehouse code.
    
    Returns:
        (warehouse_code, delivery_code)
    """
    warehouse_code = generate_verification_code(length)
    delivery_code = generate_verification_code(length)
    while delivery_code == warehouse_code:
        delivery_code = generate_verification_code(length)
    return warehouse_code, delivery_code
