"""Static ABO/Rh compatibility table.

Keys are recipient blood groups; values are the donor groups whose red cells a
recipient of that group can safely receive.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Tuple

from blood.exceptions import InvalidBloodTypeError

BLOOD_GROUPS: Tuple[str, ...] = ("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-")

BLOOD_GROUP_CHOICES = [(group, group) for group in BLOOD_GROUPS]

DONOR_GROUPS_FOR_RECIPIENT: Dict[str, FrozenSet[str]] = {
    "A+": frozenset({"A+", "A-", "O+", "O-"}),
    "A-": frozenset({"A-", "O-"}),
    "B+": frozenset({"B+", "B-", "O+", "O-"}),
    "B-": frozenset({"B-", "O-"}),
    "AB+": frozenset(BLOOD_GROUPS),
    "AB-": frozenset({"A-", "B-", "AB-", "O-"}),
    "O+": frozenset({"O+", "O-"}),
    "O-": frozenset({"O-"}),
}


def normalize_blood_group(value) -> str:
    group = str(value or "").strip().upper()
    if group not in DONOR_GROUPS_FOR_RECIPIENT:
        raise InvalidBloodTypeError(value)
    return group


def compatible_donors(recipient_group) -> FrozenSet[str]:
    """Donor groups that may give to ``recipient_group``."""
    return DONOR_GROUPS_FOR_RECIPIENT[normalize_blood_group(recipient_group)]


def compatible_recipients(donor_group) -> FrozenSet[str]:
    """Recipient groups a donor of ``donor_group`` can give to."""
    group = normalize_blood_group(donor_group)
    return frozenset(
        recipient for recipient, donors in DONOR_GROUPS_FOR_RECIPIENT.items() if group in donors
    )


__all__ = [
    "BLOOD_GROUPS",
    "BLOOD_GROUP_CHOICES",
    "DONOR_GROUPS_FOR_RECIPIENT",
    "compatible_donors",
    "compatible_recipients",
    "normalize_blood_group",
]
