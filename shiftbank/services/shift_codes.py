from __future__ import annotations

import enum
from dataclasses import dataclass
from fractions import Fraction
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping, Union


class ShiftCategory(str, enum.Enum):
    REST = "rest"
    NIGHT_SMALL = "night_small"
    NIGHT_BIG = "night_big"
    NIGHT_WHOLE = "night_whole"
    DAY = "day"
    DAY_HALF = "day_half"
    NIGHT_HANDOFF = "night_handoff"
    SICK_LEAVE = "sick_leave"
    MARRIAGE_LEAVE = "marriage_leave"
    MATERNITY_LEAVE = "maternity_leave"
    LEGAL_HOLIDAY_MARKER = "legal_holiday_marker"
    NURSING_HALF = "nursing_half"
    NURSING_REST = "nursing_rest"
    SUPPORT_GROUP_WORK = "support_group_work"
    SUPPORT_FEVER_WARD = "support_fever_ward"
    SUPPORT_ISOLATION_WARD = "support_isolation_ward"
    SUPPORT_OPHTHALMOLOGY_2 = "support_ophthalmology_2"
    SUPPORT_ICU = "support_icu"
    SUPPORT_NEUROLOGY = "support_neurology"
    UNKNOWN = "unknown"


NIGHT_SHIFT_SMALL_CODE = "小"
NIGHT_HANDOFF_CODE = "下"
REST_CODE = "休"

NIGHT_CATEGORIES = frozenset(
    {
        ShiftCategory.NIGHT_SMALL,
        ShiftCategory.NIGHT_BIG,
        ShiftCategory.NIGHT_WHOLE,
        ShiftCategory.NIGHT_HANDOFF,
    }
)
DAY_CATEGORIES = frozenset({ShiftCategory.DAY, ShiftCategory.DAY_HALF})
LEAVE_CATEGORIES = frozenset(
    {
        ShiftCategory.SICK_LEAVE,
        ShiftCategory.MARRIAGE_LEAVE,
        ShiftCategory.MATERNITY_LEAVE,
    }
)
SUPPORT_CATEGORIES = frozenset(
    {
        ShiftCategory.SUPPORT_GROUP_WORK,
        ShiftCategory.SUPPORT_FEVER_WARD,
        ShiftCategory.SUPPORT_ISOLATION_WARD,
        ShiftCategory.SUPPORT_OPHTHALMOLOGY_2,
        ShiftCategory.SUPPORT_ICU,
        ShiftCategory.SUPPORT_NEUROLOGY,
    }
)
NURSING_CATEGORIES = frozenset({ShiftCategory.NURSING_HALF, ShiftCategory.NURSING_REST})

# Categories that count as a day on duty even while their work value is 0.
ON_DUTY_CATEGORIES = NIGHT_CATEGORIES | DAY_CATEGORIES | SUPPORT_CATEGORIES | NURSING_CATEGORIES

# Categories whose work value is decided by the holiday flag alone.
HOLIDAY_CONDITIONED_CATEGORIES = SUPPORT_CATEGORIES | LEAVE_CATEGORIES

ALLOWED_WORK_VALUES = frozenset(
    {Fraction(0), Fraction(1, 4), Fraction(1, 2), Fraction(3, 4), Fraction(1)}
)
DEFAULT_NURSING_HALF_VALUE = Fraction(1, 2)


@dataclass(frozen=True, slots=True)
class ShiftDefinition:
    code: str
    work_value: Fraction
    category: ShiftCategory
    description: str


@dataclass(frozen=True, slots=True)
class KnownShift:
    definition: ShiftDefinition

    @property
    def code(self) -> str:
        return self.definition.code

    @property
    def work_value(self) -> Fraction:
        return self.definition.work_value

    @property
    def category(self) -> ShiftCategory:
        return self.definition.category

    @property
    def description(self) -> str:
        return self.definition.description


@dataclass(frozen=True, slots=True)
class UnknownShift:
    raw_code: str

    @property
    def code(self) -> str:
        return self.raw_code

    @property
    def work_value(self) -> Fraction:
        return Fraction(0)

    @property
    def category(self) -> ShiftCategory:
        return ShiftCategory.UNKNOWN

    @property
    def description(self) -> str:
        return f"Unknown shift type: {self.raw_code}"


ShiftLookup = Union[KnownShift, UnknownShift]


class ShiftTable:
    """Immutable code -> ShiftDefinition lookup.

    Unrecognised codes never raise; they resolve to ``UnknownShift`` so callers
    have to handle the unknown case explicitly.
    """

    __slots__ = ("_definitions",)

    def __init__(self, definitions: list[ShiftDefinition]):
        by_code: dict[str, ShiftDefinition] = {}
        for definition in definitions:
            if definition.code in by_code:
                raise ValueError(f"Duplicate shift code: {definition.code}")
            if definition.work_value not in ALLOWED_WORK_VALUES:
                raise ValueError(f"Invalid work value for {definition.code}: {definition.work_value}")
            by_code[definition.code] = definition
        self._definitions: Mapping[str, ShiftDefinition] = MappingProxyType(by_code)

    def classify(self, code: str) -> ShiftLookup:
        normalized = (code or "").strip()
        definition = self._definitions.get(normalized)
        if definition is None:
            return UnknownShift(raw_code=normalized)
        return KnownShift(definition=definition)

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and code.strip() in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    @property
    def definitions(self) -> Mapping[str, ShiftDefinition]:
        return self._definitions


def build_shift_table(*, nursing_half_value: Fraction = DEFAULT_NURSING_HALF_VALUE) -> ShiftTable:
    def _d(code: str, value: Fraction | int, category: ShiftCategory, description: str) -> ShiftDefinition:
        return ShiftDefinition(code=code, work_value=Fraction(value), category=category, description=description)

    return ShiftTable(
        [
            _d(REST_CODE, 0, ShiftCategory.REST, "Rest day"),
            _d(NIGHT_SHIFT_SMALL_CODE, 1, ShiftCategory.NIGHT_SMALL, "Night shift (small)"),
            _d("大", 1, ShiftCategory.NIGHT_BIG, "Night shift (big)"),
            _d("夜", 1, ShiftCategory.NIGHT_WHOLE, "Night shift (whole)"),
            _d("白", 1, ShiftCategory.DAY, "Day shift"),
            _d("半", Fraction(1, 2), ShiftCategory.DAY_HALF, "Day shift (half)"),
            _d(NIGHT_HANDOFF_CODE, 1, ShiftCategory.NIGHT_HANDOFF, "Night shift handoff day"),
            _d("病假", 0, ShiftCategory.SICK_LEAVE, "Sick leave"),
            _d("婚假", 0, ShiftCategory.MARRIAGE_LEAVE, "Marriage leave"),
            _d("产假", 0, ShiftCategory.MATERNITY_LEAVE, "Maternity leave"),
            _d("公休日", 0, ShiftCategory.LEGAL_HOLIDAY_MARKER, "Legal holiday"),
            _d("哺乳半", nursing_half_value, ShiftCategory.NURSING_HALF, "Nursing half shift"),
            _d("哺乳休", Fraction(1, 4), ShiftCategory.NURSING_REST, "Nursing rest day"),
            _d("群力", 0, ShiftCategory.SUPPORT_GROUP_WORK, "Group work"),
            _d("发热病房", 0, ShiftCategory.SUPPORT_FEVER_WARD, "Fever ward support"),
            _d("隔离", 0, ShiftCategory.SUPPORT_ISOLATION_WARD, "Isolation ward support"),
            _d("眼二", 0, ShiftCategory.SUPPORT_OPHTHALMOLOGY_2, "Ophthalmology ward 2 support"),
            _d("ICU", 0, ShiftCategory.SUPPORT_ICU, "ICU support"),
            _d("神内", 0, ShiftCategory.SUPPORT_NEUROLOGY, "Neurology support"),
        ]
    )


@lru_cache
def default_shift_table() -> ShiftTable:
    return build_shift_table()


def classify(code: str, table: ShiftTable | None = None) -> ShiftLookup:
    return (table or default_shift_table()).classify(code)


def is_on_duty(category: ShiftCategory) -> bool:
    return category in ON_DUTY_CATEGORIES
