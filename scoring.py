from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

GRADE_POINTS = {"A": 5, "B": 4, "C": 3, "D": 2, "E": 1, "F": 0}
STRONG_GRADES = {"A", "B", "C"}
PASS_GRADES = {"D", "E"}

LEVEL_ORDER = (
    "high school",
    "certificate",
    "diploma",
    "undergraduate",
    "postgraduate",
    "masters",
    "doctorate",
)

TECHNICAL_COURSE = re.compile(r"engineering|science|math|computer|tech|accounting", re.IGNORECASE)
SCIENCE_COURSE = re.compile(r"science|biology|chemistry|physics|health|nursing|medicine", re.IGNORECASE)
SCIENCE_SUBJECT = re.compile(r"science|biology|chemistry|physics", re.IGNORECASE)
MIN_GPA_PATTERN = re.compile(r"gpa[:\s]*(\d+\.?\d*)", re.IGNORECASE)
LEADING_NUMBER = re.compile(r"^\s*([-+]?(?:\d+\.?\d*|\.\d+))")

WORK_FIELDS = (
    "Accounting & Finance",
    "Administration & Office Support",
    "Agriculture & Farming",
    "Arts & Creative Design",
    "Automotive & Mechanics",
    "Banking & Financial Services",
    "Building & Construction",
    "Business Management",
    "Call Centre & Customer Service",
    "Carpentry & Woodwork",
    "Cleaning & Janitorial Services",
    "Community Services & Development",
    "Consulting & Strategy",
    "Education & Training",
    "Electrical & Electronics",
    "Engineering",
    "Healthcare & Medical",
    "Hospitality & Tourism",
    "Human Resources",
    "Information Technology",
    "Insurance",
    "Legal Services",
    "Logistics & Supply Chain",
    "Manufacturing & Production",
    "Marketing & Communications",
    "Mining & Resources",
    "Nursing & Aged Care",
    "Painting & Decorating",
    "Plumbing & HVAC",
    "Real Estate & Property",
    "Retail & Sales",
    "Science & Research",
    "Security & Safety",
    "Social Work & Counselling",
    "Sport & Recreation",
    "Telecommunications",
    "Trades & Services",
    "Transport & Delivery",
    "Welding & Metal Work",
    "Other",
)


@dataclass(frozen=True)
class BreakpointTable:
    """Points for a grade value, with the scale picked from the value itself.

    Values up to ``five_point_limit`` are read on the 0-5 scale, values up to
    100 as a percentage. Missing, non-positive or larger values earn nothing.
    """

    name: str
    five_point: tuple[tuple[float, int], ...]
    percentage: tuple[tuple[float, int], ...]
    floor: int
    five_point_limit: float = 5.0

    def points(self, value: float | None) -> int:
        if value is None or value <= 0 or value > 100:
            return 0
        steps = self.five_point if value <= self.five_point_limit else self.percentage
        for threshold, points in steps:
            if value >= threshold:
                return points
        return self.floor


HIGH_SCHOOL_GPA_TABLE = BreakpointTable(
    name="high_school_gpa",
    five_point=((4.0, 35), (3.5, 30), (3.0, 25), (2.5, 18), (2.0, 10)),
    percentage=((85, 35), (75, 30), (65, 25), (55, 18), (50, 10)),
    floor=5,
)

SUBJECT_AVERAGE_TABLE = BreakpointTable(
    name="subject_average",
    five_point=((4.0, 15), (3.5, 13), (3.0, 11), (2.5, 8), (2.0, 5)),
    percentage=((85, 15), (75, 13), (65, 11), (55, 8), (50, 5)),
    floor=3,
)

ACADEMIC_GPA_TABLE = BreakpointTable(
    name="academic_gpa",
    five_point=((3.7, 30), (3.3, 25), (3.0, 20), (2.5, 14), (2.0, 8)),
    percentage=((85, 30), (75, 25), (65, 20), (55, 14)),
    floor=3,
)

JOB_ACADEMIC_TABLE = BreakpointTable(
    name="job_academic",
    five_point=((3.5, 30), (3.0, 22), (2.5, 15)),
    percentage=((80, 30), (70, 22), (60, 15)),
    floor=8,
)


@dataclass
class ScoreDetail:
    score: int
    components: dict[str, float] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {"score": self.score, "components": dict(self.components)}


def _field(record: Any, name: str, default: Any = None) -> Any:
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def _to_float(value: Any, default: float | None = None) -> float | None:
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    return parse_number(str(value), default)


def parse_number(text: str, default: float | None = None) -> float | None:
    """Read the leading number of a string ("85%" -> 85.0, "B" -> default)."""
    match = LEADING_NUMBER.match(text or "")
    if not match:
        return default
    return float(match.group(1))


def _norm_set(values: Any) -> set[str]:
    return {str(v).strip().lower() for v in (values or []) if str(v).strip()}


def _as_list(value: Any) -> list[Any]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _clamp_score(value: float) -> int:
    return max(0, min(100, int(round(value))))


def letter_grade(grade: Any) -> str:
    return str(grade or "").strip().upper()[:1]


def subject_grades(profile: Any) -> list[tuple[str, str]]:
    grades: list[tuple[str, str]] = []
    for entry in _as_list(_field(profile, "subjects")):
        name = _field(entry, "subject") or _field(entry, "name") or ""
        grades.append((str(name).strip(), str(_field(entry, "grade") or "").strip()))
    return grades


def _find_grade(grades: list[tuple[str, str]], pattern: re.Pattern[str] | str) -> str | None:
    regex = re.compile(pattern, re.IGNORECASE) if isinstance(pattern, str) else pattern
    for name, grade in grades:
        if regex.search(name):
            return letter_grade(grade)
    return None


def _band_points(grade: str | None, strong: int, weak: int) -> int:
    if grade in STRONG_GRADES:
        return strong
    if grade in PASS_GRADES:
        return weak
    return 0


def average_grade_point(grades: list[tuple[str, str]]) -> float:
    if not grades:
        return 0.0
    total = sum(GRADE_POINTS.get(letter_grade(grade), 0) for _, grade in grades)
    return total / len(grades)


def course_score(profile: Any, course: Any) -> int:
    return course_score_detail(profile, course).score


def course_score_detail(profile: Any, course: Any) -> ScoreDetail:
    grades = subject_grades(profile)
    course_name = str(_field(course, "name") or "")

    english = _band_points(_find_grade(grades, "english"), 20, 10)

    technical = 0
    if TECHNICAL_COURSE.search(course_name):
        technical = _band_points(_find_grade(grades, "math"), 20, 10)

    science = 0
    if SCIENCE_COURSE.search(course_name):
        science = _band_points(_find_grade(grades, SCIENCE_SUBJECT), 20, 10)

    overall = (average_grade_point(grades) / 5) * 40
    certificates = min(len(_as_list(_field(profile, "certificates"))) * 2, 10)

    components = {
        "english": english,
        "mathematics": technical,
        "science": science,
        "overall_grades": overall,
        "certificates": certificates,
    }
    return ScoreDetail(_clamp_score(sum(components.values())), components)


def _subject_value(grade: str, normalize_letters: bool) -> float:
    if normalize_letters:
        letter = letter_grade(grade)
        if letter in GRADE_POINTS and parse_number(grade) is None:
            return float(GRADE_POINTS[letter])
    return parse_number(grade, 0.0) or 0.0


def review_score(profile: Any, normalize_letters: bool = False) -> int:
    return review_score_detail(profile, normalize_letters).score


def review_score_detail(profile: Any, normalize_letters: bool = False) -> ScoreDetail:
    grades = subject_grades(profile)

    high_school = HIGH_SCHOOL_GPA_TABLE.points(_to_float(_field(profile, "high_school_gpa")))

    if len(grades) >= 5:
        average = sum(_subject_value(grade, normalize_letters) for _, grade in grades) / len(grades)
        subjects = SUBJECT_AVERAGE_TABLE.points(average)
    elif len(grades) >= 3:
        subjects = 8
    else:
        subjects = 5

    academic = ACADEMIC_GPA_TABLE.points(_to_float(_field(profile, "academic_gpa")))
    certificates = min(len(_as_list(_field(profile, "certificates"))) * 3, 10)
    experience = min(len(_as_list(_field(profile, "work_experience"))) * 3, 10)

    components = {
        "high_school_gpa": high_school,
        "subjects": subjects,
        "academic_gpa": academic,
        "certificates": certificates,
        "work_experience": experience,
    }
    return ScoreDetail(_clamp_score(sum(components.values())), components)


def _mentions(text: str, needle: str) -> bool:
    return bool(needle) and needle in text


def field_match_points(field_of_work: str | None, interests: set[str], job_text: str) -> int:
    declared = (field_of_work or "").strip().lower()
    interest_match = any(_mentions(job_text, interest) for interest in interests)
    if declared:
        if _mentions(job_text, declared):
            return 35
        if interest_match:
            return 25
        return 10
    if interest_match:
        return 25
    return 5


def job_score(application: Any, profile: Any, job: Any) -> int:
    return job_score_detail(application, profile, job).score


def job_score_detail(application: Any, profile: Any, job: Any) -> ScoreDetail:
    job_text = " ".join(
        str(_field(job, name) or "").lower() for name in ("title", "requirements", "description")
    )
    interests = _norm_set(_field(profile, "fields_of_interest"))
    field_points = field_match_points(_field(application, "field_of_work"), interests, job_text)

    gpa = _to_float(_field(profile, "high_school_gpa")) or _to_float(_field(profile, "academic_gpa"))
    academic = JOB_ACADEMIC_TABLE.points(gpa)

    experience_count = len(_as_list(_field(profile, "work_experience")))
    if experience_count >= 3:
        experience = 20
    elif experience_count == 2:
        experience = 14
    elif experience_count == 1:
        experience = 8
    else:
        experience = 0

    certificate_count = len(_as_list(_field(profile, "certificates")))
    if certificate_count >= 3:
        certificates = 15
    elif certificate_count == 2:
        certificates = 10
    elif certificate_count == 1:
        certificates = 5
    else:
        certificates = 0

    components = {
        "field_of_work": field_points,
        "academic": academic,
        "work_experience": experience,
        "certificates": certificates,
    }
    return ScoreDetail(_clamp_score(sum(components.values())), components)


def job_qualification_band(score: int) -> str:
    if score >= 65:
        return "qualified"
    if score >= 45:
        return "under_review"
    return "not_qualified"


def normalize_level(level: Any) -> str:
    return re.sub(r"[\s_\-]+", " ", str(level or "")).strip().lower()


def level_rank(level: Any) -> int | None:
    value = normalize_level(level)
    if value in LEVEL_ORDER:
        return LEVEL_ORDER.index(value)
    return None


def required_min_gpa(requirements: str | None) -> float | None:
    match = MIN_GPA_PATTERN.search(requirements or "")
    if not match:
        return None
    return float(match.group(1))


def candidate_gpa(profile: Any) -> float:
    return _to_float(_field(profile, "academic_gpa")) or _to_float(_field(profile, "high_school_gpa")) or 0.0


def course_eligibility_gaps(profile: Any, course: Any) -> list[str]:
    """Reasons a candidate may not apply to a course; empty when eligible."""
    gaps: list[str] = []

    minimum = required_min_gpa(_field(course, "requirements"))
    gpa = candidate_gpa(profile)
    if minimum is not None and 0 < gpa < minimum:
        gaps.append(f"Minimum GPA {minimum:g} required, candidate GPA is {gpa:g}")

    candidate_rank = level_rank(_field(profile, "academic_level"))
    course_rank = level_rank(_field(course, "level"))
    if candidate_rank is not None and course_rank is not None and candidate_rank > course_rank:
        gaps.append(
            f"Candidate level '{normalize_level(_field(profile, 'academic_level'))}' is above "
            f"course level '{normalize_level(_field(course, 'level'))}'"
        )
    return gaps


def job_eligibility_gaps(profile: Any, job: Any) -> list[str]:
    gaps: list[str] = []
    requirements = str(_field(job, "requirements") or "").lower()

    minimum = required_min_gpa(requirements)
    gpa = candidate_gpa(profile)
    if minimum is not None and 0 < gpa < minimum:
        gaps.append(f"Minimum GPA {minimum:g} required")

    job_field = str(_field(job, "field_of_work") or "").strip().lower()
    interests = _norm_set(_field(profile, "fields_of_interest"))
    if job_field and interests and job_field not in interests and job_field in requirements:
        gaps.append(f"Requires experience in {job_field}")
    return gaps


def is_valid_work_field(value: Any) -> bool:
    return isinstance(value, str) and value.strip() in WORK_FIELDS
