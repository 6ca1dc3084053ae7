"""Grading policy: percentage to letter grade / grade point, and credit-weighted GPA."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Tuple, Union

Number = Union[int, float, Decimal]

# (letter, min percentage, grade point), highest threshold first
GRADE_TABLE: Tuple[Tuple[str, Decimal, Decimal], ...] = (
    ("A+", Decimal("90"), Decimal("4.0")),
    ("A", Decimal("80"), Decimal("3.7")),
    ("B+", Decimal("70"), Decimal("3.3")),
    ("B", Decimal("60"), Decimal("3.0")),
    ("C+", Decimal("50"), Decimal("2.5")),
    ("C", Decimal("40"), Decimal("2.0")),
    ("D", Decimal("33"), Decimal("1.5")),
    ("F", Decimal("0"), Decimal("0.0")),
)

PASS_GRADE_POINT = Decimal("1.5")

TWO_PLACES = Decimal("0.01")
ONE_PLACE = Decimal("0.1")


def to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def round_2(val: Number) -> Decimal:
    return to_decimal(val).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def round_1(val: Number) -> Decimal:
    return to_decimal(val).quantize(ONE_PLACE, rounding=ROUND_HALF_UP)


def percentage(part: Number, whole: Number) -> Decimal:
    """part / whole * 100 rounded to 1 decimal; 0 when whole is 0."""
    whole_d = to_decimal(whole)
    if whole_d <= 0:
        return Decimal("0.0")
    return round_1(to_decimal(part) / whole_d * 100)


def get_grade(marks_obtained: Number, total_marks: Number = 100) -> Tuple[str, Decimal]:
    """Return (letter_grade, grade_point) for a score out of total_marks."""
    total = to_decimal(total_marks)
    pct = to_decimal(marks_obtained) / total * 100 if total > 0 else Decimal("0")
    for letter, min_pct, grade_point in GRADE_TABLE:
        if pct >= min_pct:
            return letter, grade_point
    return "F", Decimal("0.0")


def is_pass(grade_point: Number) -> bool:
    return to_decimal(grade_point) >= PASS_GRADE_POINT


def calculate_weighted_gpa(entries: Iterable[Tuple[Number, int]]) -> Decimal:
    """Credit-weighted mean of (grade_point, credits) pairs. No credits -> 0."""
    total_weighted = Decimal("0")
    total_credits = 0
    for grade_point, credits in entries:
        total_weighted += to_decimal(grade_point) * credits
        total_credits += credits
    if total_credits <= 0:
        return Decimal("0")
    return round_2(total_weighted / total_credits)


def calculate_gpa(entries: Iterable[Tuple[Number, int]], total_marks: Number = 100) -> Decimal:
    """Credit-weighted GPA of (marks, credits) pairs, each graded against total_marks."""
    return calculate_weighted_gpa(
        (get_grade(marks, total_marks)[1], credits) for marks, credits in entries
    )
