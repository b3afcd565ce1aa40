"""Universal tooth numbering (1-32) for the permanent dentition.

1-16 run along the upper arch from the patient's right third molar to the
left third molar; 17-32 continue along the lower arch from left to right.
Both arches share the same sequence of tooth types.
"""

from __future__ import annotations

from dental_ledger.core.errors import LedgerValidationError
from dental_ledger.models.odontogram import ToothType

TOOTH_NUMBERS = range(1, 33)

_ARCH_SEQUENCE = (
    ToothType.molar,
    ToothType.molar,
    ToothType.molar,
    ToothType.premolar,
    ToothType.premolar,
    ToothType.canine,
    ToothType.incisor,
    ToothType.incisor,
    ToothType.incisor,
    ToothType.incisor,
    ToothType.canine,
    ToothType.premolar,
    ToothType.premolar,
    ToothType.molar,
    ToothType.molar,
    ToothType.molar,
)


def validate_tooth_number(tooth_number: int) -> int:
    if tooth_number not in TOOTH_NUMBERS:
        raise LedgerValidationError(f"Tooth number must be between 1 and 32, got {tooth_number}")
    return tooth_number


def tooth_type_for(tooth_number: int) -> ToothType:
    validate_tooth_number(tooth_number)
    return _ARCH_SEQUENCE[(tooth_number - 1) % 16]


def is_upper(tooth_number: int) -> bool:
    return validate_tooth_number(tooth_number) <= 16
