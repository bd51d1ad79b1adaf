from typing import Dict, List, NamedTuple


class Course(NamedTuple):
    name: str
    credit: int


COMMON = 'Common'
PRE_ENGINEERING = 'Pre-Engineering'
OTHER_NATURAL_SCIENCE = 'Other Natural Science'

# year -> semester -> program -> ordered course list.
# Course order is the order students are prompted in.
COURSE_CATALOG: Dict[str, Dict[str, Dict[str, List[Course]]]] = {
    'Year 1': {
        'Semester 1': {
            COMMON: [
                Course('Communicative English Language Skills I(FLEn. 1011)', 5),
                Course('General Psychology(Psch. 1011)', 5),
                Course('Mathematics for Natural Sciences(Math. 1011)', 5),
                Course('Critical Thinking(LoCT. 1011)', 5),
                Course('Geography of Ethiopia and the Horn(GeES. 1011)', 5),
                Course('General Physics(Phys. 1011)', 5),
            ],
        },
        'Semester 2': {
            PRE_ENGINEERING: [
                Course('Applied Mathematics I(Math. 1041)', 5),
                Course('Communicative English Language Skills II(FLEn. 1012)', 5),
                Course('Moral and Civic Education(MCiE. 1012)', 4),
                Course('Enterprenuership(Mgmt. 1012)', 5),
                Course('Social Anthropology(Anth. 1012)', 4),
                Course('Introduction to Emerging Technologies(EmTe.1012)', 5),
                Course('Computer Programing(ECEg 2052) C++', 5),
            ],
            OTHER_NATURAL_SCIENCE: [
                Course('Communicative English Language Skills II(FLEn. 1012)', 5),
                Course('Moral and Civic Education(MCiE. 1012)', 4),
                Course('Enterprenuership(Mgmt. 1012)', 5),
                Course('Social Anthropology(Anth. 1012)', 4),
                Course('Introduction to Emerging Technologies(EmTe.1012)', 5),
                Course('General Chemistry(Chem. 1012)', 5),
                Course('General Biology(Biol. 1012)', 5),
            ],
        },
    },
    # Not published yet; selecting these answers "coming soon".
    'Year 2': {
        'Semester 1': {},
        'Semester 2': {},
    },
}


def years() -> List[str]:
    return list(COURSE_CATALOG)


def semesters(year: str) -> List[str]:
    return list(COURSE_CATALOG.get(year, {}))


def programs(year: str, semester: str) -> List[str]:
    return list(COURSE_CATALOG.get(year, {}).get(semester, {}))


def get_courses(year: str, semester: str, program: str) -> List[Course]:
    """Course list for a program; empty when the combination is unknown."""
    return list(COURSE_CATALOG.get(year, {}).get(semester, {}).get(program, []))


def total_credits(courses: List[Course]) -> int:
    return sum(course.credit for course in courses)
