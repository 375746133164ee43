from __future__ import annotations

import re
from typing import Optional

from django.conf import settings


def normalize_phone_number(raw: Optional[str]) -> Optional[str]:
    """Normalize a contact number to E.164 for SNS.

    Local numbers get AWS_SNS_DEFAULT_COUNTRY_CODE; a leading trunk ``0`` is
    dropped. Returns None if the number is missing/invalid.
    """

    if not raw:
        return None

    cleaned = re.sub(r"[\s\-()]+", "", str(raw).strip())

    if cleaned.startswith("+"):
        digits = "+" + re.sub(r"[^0-9]", "", cleaned)
        return digits if len(digits) >= 8 else None

    digits_only = re.sub(r"[^0-9]", "", cleaned).lstrip("0")
    if not digits_only:
        return None

    default_code = getattr(settings, "AWS_SNS_DEFAULT_COUNTRY_CODE", None) or "+1"
    if not default_code.startswith("+"):
        default_code = f"+{default_code}"

    # Country code typed without the '+'
    if digits_only.startswith(default_code.lstrip("+")) and len(digits_only) > 10:
        return f"+{digits_only}"

    return f"{default_code}{digits_only}"
