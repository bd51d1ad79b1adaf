import pytest

from gpabot import catalog
from gpabot.calculator import (
    breakdown,
    compute_cgpa,
    compute_gpa,
    format_breakdown_line,
    format_gpa,
)
from gpabot.grades import get_grade_by_point

PRE_ENGINEERING = catalog.get_courses('Year 1', 'Semester 2', catalog.PRE_ENGINEERING)
SCORES = [95, 88, 80, 75, 70, 65, 92]


def test_pre_engineering_letters_and_gpa():
    results = breakdown(SCORES, PRE_ENGINEERING)
    assert [r.grade.letter for r in results] == ['A+', 'A', 'A-', 'B+', 'B', 'B-', 'A+']

    points = [4.0, 4.0, 3.75, 3.5, 3.0, 2.75, 4.0]
    credits = [c.credit for c in PRE_ENGINEERING]
    expected = sum(p * c for p, c in zip(points, credits)) / sum(credits)
    assert format_gpa(compute_gpa(SCORES, PRE_ENGINEERING)) == f"{expected:.2f}"


def test_gpa_follows_course_pairing_not_entry_order():
    pairs = list(zip(SCORES, PRE_ENGINEERING))
    reversed_scores = [s for s, _ in reversed(pairs)]
    reversed_courses = [c for _, c in reversed(pairs)]
    assert compute_gpa(reversed_scores, reversed_courses) == pytest.approx(compute_gpa(SCORES, PRE_ENGINEERING))


def test_mismatched_lengths_rejected():
    with pytest.raises(ValueError):
        compute_gpa([90, 80], PRE_ENGINEERING)


def test_empty_course_list_rejected():
    with pytest.raises(ValueError):
        compute_gpa([], [])


def test_cgpa_uses_semester_credit_weights():
    cgpa = compute_cgpa(3.5, 3.8)
    assert format_gpa(cgpa) == f"{(3.5 * 30 + 3.8 * 33) / 63:.2f}"
    assert get_grade_by_point(round(cgpa, 2)).letter == 'B+'


def test_cgpa_custom_weights():
    assert compute_cgpa(2.0, 4.0, 1, 1) == pytest.approx(3.0)


def test_breakdown_line_format():
    line = format_breakdown_line(breakdown([95], PRE_ENGINEERING[:1])[0])
    assert line == "Applied Mathematics I(Math. 1041): 95 → A+ (4.00) x 5 = 20.00"


def test_catalog_totals_match_default_cgpa_weights():
    semester1 = catalog.get_courses('Year 1', 'Semester 1', catalog.COMMON)
    assert catalog.total_credits(semester1) == 30
    for program in catalog.programs('Year 1', 'Semester 2'):
        assert catalog.total_credits(catalog.get_courses('Year 1', 'Semester 2', program)) == 33
