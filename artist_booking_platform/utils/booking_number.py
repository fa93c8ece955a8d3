"""Booking number generation."""

import random
import string
from datetime import datetime, timezone
from typing import Optional


def generate_booking_number(prefix: str = "BK", moment: Optional[datetime] = None) -> str:
    """Generate a human readable booking number.

    Args:
        prefix: Leading tag of the number
        moment: Creation time; defaults to now (UTC)

    Returns:
        str: Booking number like 'BK-202610181530-A3B7'
    """
    moment = moment or datetime.now(timezone.utc)
    date_part = moment.astimezone(timezone.utc).strftime("%Y%m%d%H%M")
    random_part = "".join(random.choices(string.ascii_uppercase + string.digits, k=4))
    return f"{prefix}-{date_part}-{random_part}"
