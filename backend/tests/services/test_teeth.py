import pytest

from dental_ledger.core.errors import LedgerValidationError
from dental_ledger.models.odontogram import ToothType
from dental_ledger.services.teeth import TOOTH_NUMBERS, is_upper, tooth_type_for


def test_full_dentition_has_32_teeth():
    assert list(TOOTH_NUMBERS) == list(range(1, 33))


@pytest.mark.parametrize(
    "number, expected",
    [
        (1, ToothType.molar),
        (3, ToothType.molar),
        (4, ToothType.premolar),
        (6, ToothType.canine),
        (8, ToothType.incisor),
        (11, ToothType.canine),
        (14, ToothType.molar),
        (17, ToothType.molar),
        (22, ToothType.canine),
        (25, ToothType.incisor),
        (29, ToothType.premolar),
        (32, ToothType.molar),
    ],
)
def test_tooth_type_follows_universal_numbering(number, expected):
    assert tooth_type_for(number) == expected


def test_each_arch_has_the_same_type_counts():
    upper = [tooth_type_for(n) for n in TOOTH_NUMBERS if is_upper(n)]
    lower = [tooth_type_for(n) for n in TOOTH_NUMBERS if not is_upper(n)]
    for arch in (upper, lower):
        assert len(arch) == 16
        assert arch.count(ToothType.molar) == 6
        assert arch.count(ToothType.premolar) == 4
        assert arch.count(ToothType.canine) == 2
        assert arch.count(ToothType.incisor) == 4


@pytest.mark.parametrize("number", [0, 33, -1])
def test_out_of_range_tooth_numbers_are_rejected(number):
    with pytest.raises(LedgerValidationError):
        tooth_type_for(number)
