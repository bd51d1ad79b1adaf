from typing import List, NamedTuple, Sequence

from .catalog import Course
from .grades import Grade, get_grade

# Year 1 semester credit loads (Semester 1: 30, Semester 2: 33).
DEFAULT_CGPA_CREDITS = (30, 33)


class CourseResult(NamedTuple):
    course: Course
    score: float
    grade: Grade

    @property
    def weighted(self) -> float:
        return self.grade.point * self.course.credit


def breakdown(scores: Sequence[float], courses: Sequence[Course]) -> List[CourseResult]:
    """Pair each score with the course it was entered for."""
    if len(scores) != len(courses):
        raise ValueError(f"got {len(scores)} scores for {len(courses)} courses")
    return [CourseResult(course, score, get_grade(score)) for score, course in zip(scores, courses)]


def compute_gpa(scores: Sequence[float], courses: Sequence[Course]) -> float:
    results = breakdown(scores, courses)
    total_credits = sum(r.course.credit for r in results)
    if total_credits <= 0:
        raise ValueError("course list has no credits")
    return sum(r.weighted for r in results) / total_credits


def compute_cgpa(gpa1: float, gpa2: float,
                 credit1: int = DEFAULT_CGPA_CREDITS[0],
                 credit2: int = DEFAULT_CGPA_CREDITS[1]) -> float:
    return (gpa1 * credit1 + gpa2 * credit2) / (credit1 + credit2)


def format_gpa(value: float) -> str:
    return f"{value:.2f}"


def format_score(score: float) -> str:
    return f"{score:g}"


def format_breakdown_line(result: CourseResult) -> str:
    return (
        f"{result.course.name}: {format_score(result.score)} → "
        f"{result.grade.letter} ({result.grade.point:.2f}) x {result.course.credit} = {result.weighted:.2f}"
    )
