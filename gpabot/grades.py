from typing import NamedTuple


class Grade(NamedTuple):
    letter: str
    point: float


# (lower bound, letter, point), checked top to bottom. A+ needs strictly more than 90.
SCORE_SCALE = [
    (85, 'A', 4.0),
    (80, 'A-', 3.75),
    (75, 'B+', 3.5),
    (70, 'B', 3.0),
    (65, 'B-', 2.75),
    (60, 'C+', 2.5),
    (50, 'C', 2.0),
    (45, 'C-', 1.75),
    (40, 'D', 1.0),
    (30, 'FX', 0.0),
]

POINT_SCALE = [
    (4.0, 'A'),
    (3.75, 'A-'),
    (3.5, 'B+'),
    (3.0, 'B'),
    (2.75, 'B-'),
    (2.5, 'C+'),
    (2.0, 'C'),
    (1.75, 'C-'),
    (1.0, 'D'),
    (0.0, 'FX'),
]


def get_grade(score: float) -> Grade:
    """Letter grade and grade point for a 0-100 course score."""
    if score > 90:
        return Grade('A+', 4.0)
    for bound, letter, point in SCORE_SCALE:
        if score >= bound:
            return Grade(letter, point)
    return Grade('F', 0.0)


def get_grade_by_point(point: float) -> Grade:
    """Letter grade for a 0-4 grade point average, used for CGPA results."""
    for bound, letter in POINT_SCALE:
        if point >= bound:
            return Grade(letter, bound)
    return Grade('F', 0.0)
