from __future__ import annotations

import csv
from decimal import Decimal
from pathlib import Path
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from models import (
    ApplicationQuota,
    CandidateProfile,
    Course,
    CourseApplication,
    Job,
    JobApplication,
    Notification,
)


REQUIRED_COURSE_COLUMNS = {
    "institution_id",
    "course_id",
    "name",
    "institution_name",
    "level",
    "requirements",
    "field_tags",
}


def _parse_list(value: str) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split("|") if item.strip()]


def _parse_decimal(value: Any) -> Decimal | None:
    if value is None or str(value).strip() == "":
        return None
    return Decimal(str(value))


def validate_csv_columns(columns: list[str]) -> tuple[bool, list[str]]:
    missing = sorted(REQUIRED_COURSE_COLUMNS - set(columns))
    return len(missing) == 0, missing


def load_courses_from_csv(csv_text: str) -> list[dict[str, Any]]:
    reader = csv.DictReader(csv_text.splitlines())
    valid, missing = validate_csv_columns(reader.fieldnames or [])
    if not valid:
        raise ValueError(f"Missing required columns: {missing}")

    rows: list[dict[str, Any]] = []
    for row in reader:
        rows.append(
            {
                "institution_id": row["institution_id"].strip(),
                "course_id": row["course_id"].strip(),
                "name": row["name"].strip(),
                "institution_name": row["institution_name"].strip(),
                "level": row["level"].strip() or None,
                "requirements": row["requirements"] or "",
                "field_tags": _parse_list(row["field_tags"]),
            }
        )
    return rows


def preview_diff(db: Session, rows: list[dict[str, Any]]) -> dict[str, int]:
    to_insert = 0
    to_update = 0
    for row in rows:
        if db.get(Course, (row["institution_id"], row["course_id"])) is not None:
            to_update += 1
        else:
            to_insert += 1
    return {"insert": to_insert, "update": to_update}


def upsert_courses(db: Session, rows: list[dict[str, Any]]) -> dict[str, int]:
    inserted = 0
    updated = 0
    for row in rows:
        existing = db.get(Course, (row["institution_id"], row["course_id"]))
        if existing:
            for key, value in row.items():
                setattr(existing, key, value)
            updated += 1
        else:
            db.add(Course(**row))
            inserted += 1
    db.flush()
    return {"inserted": inserted, "updated": updated}


def seed_courses_if_empty(db: Session, sample_csv_path: str = "data/courses.sample.csv") -> dict[str, int]:
    total = db.scalar(select(func.count()).select_from(Course))
    if total and total > 0:
        return {"inserted": 0, "updated": 0}

    path = Path(sample_csv_path)
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(_default_sample_csv(), encoding="utf-8")

    return upsert_courses(db, load_courses_from_csv(path.read_text(encoding="utf-8")))


def seed_candidate_profiles(db: Session) -> None:
    profiles = [
        {
            "student_id": "stu-ama",
            "display_name": "Ama Mensah",
            "academic_level": "high school",
            "high_school_gpa": "3.8",
            "academic_gpa": "3.5",
            "subjects": [
                {"subject": "English", "grade": "82"},
                {"subject": "Mathematics", "grade": "88"},
                {"subject": "Physics", "grade": "79"},
                {"subject": "Chemistry", "grade": "75"},
                {"subject": "History", "grade": "76"},
            ],
            "certificates": ["Python Essentials", "First Aid"],
            "work_experience": ["Robotics club volunteer"],
            "fields_of_interest": ["Information Technology", "Engineering"],
        },
        {
            "student_id": "stu-kojo",
            "display_name": "Kojo Boateng",
            "academic_level": "high school",
            "high_school_gpa": "3.1",
            "academic_gpa": None,
            "subjects": [
                {"subject": "English", "grade": "62"},
                {"subject": "Mathematics", "grade": "58"},
                {"subject": "Biology", "grade": "60"},
                {"subject": "Geography", "grade": "61"},
                {"subject": "Economics", "grade": "59"},
            ],
            "certificates": ["Customer Service Basics"],
            "work_experience": ["Weekend retail assistant", "Market stall helper"],
            "fields_of_interest": ["Retail & Sales"],
        },
        {
            "student_id": "stu-lerato",
            "display_name": "Lerato Dube",
            "academic_level": "high school",
            "high_school_gpa": "2.4",
            "academic_gpa": None,
            "subjects": [
                {"subject": "English", "grade": "B"},
                {"subject": "Mathematics", "grade": "C"},
                {"subject": "Art", "grade": "C"},
                {"subject": "Sesotho", "grade": "D"},
            ],
            "certificates": ["Sewing", "Pattern Cutting"],
            "work_experience": [],
            "fields_of_interest": ["Arts & Creative Design"],
        },
        {
            "student_id": "stu-thabo",
            "display_name": "Thabo Nkosi",
            "academic_level": "diploma",
            "high_school_gpa": "3.0",
            "academic_gpa": "2.8",
            "subjects": [
                {"subject": "English", "grade": "70"},
                {"subject": "Mathematics", "grade": "72"},
                {"subject": "Physical Science", "grade": "68"},
            ],
            "certificates": [],
            "work_experience": ["Electrical apprentice"],
            "fields_of_interest": ["Electrical & Electronics"],
        },
    ]
    for row in profiles:
        row = {
            **row,
            "high_school_gpa": _parse_decimal(row["high_school_gpa"]),
            "academic_gpa": _parse_decimal(row["academic_gpa"]),
        }
        existing = db.get(CandidateProfile, row["student_id"])
        if existing:
            for key, value in row.items():
                setattr(existing, key, value)
        else:
            db.add(CandidateProfile(**row))


def seed_jobs(db: Session) -> None:
    jobs = [
        {
            "job_id": "job-helpdesk",
            "company_id": "co-lumen",
            "company_name": "Lumen Networks",
            "title": "IT Helpdesk Intern",
            "description": "Support staff with laptops, accounts and information technology tickets.",
            "requirements": "Minimum GPA 2.5. Interest in information technology.",
            "field_of_work": "Information Technology",
        },
        {
            "job_id": "job-cashier",
            "company_id": "co-harvest",
            "company_name": "Harvest Foods",
            "title": "Store Cashier",
            "description": "Front of store retail & sales role.",
            "requirements": "Friendly, reliable, retail & sales experience preferred.",
            "field_of_work": "Retail & Sales",
        },
        {
            "job_id": "job-electrician",
            "company_id": "co-volt",
            "company_name": "Volt Services",
            "title": "Junior Electrician",
            "description": "Residential wiring and maintenance.",
            "requirements": "GPA: 3.2 and proven electrical & electronics experience.",
            "field_of_work": "Electrical & Electronics",
        },
    ]
    for row in jobs:
        existing = db.get(Job, row["job_id"])
        if existing:
            for key, value in row.items():
                setattr(existing, key, value)
        else:
            db.add(Job(**row))


def reset_and_seed(db: Session) -> None:
    for model in (Notification, JobApplication, CourseApplication, ApplicationQuota, Job, Course, CandidateProfile):
        db.execute(delete(model))
    upsert_courses(db, load_courses_from_csv(_default_sample_csv()))
    seed_candidate_profiles(db)
    seed_jobs(db)


def _default_sample_csv() -> str:
    sample_path = Path("data/courses.sample.csv")
    if sample_path.exists():
        return sample_path.read_text(encoding="utf-8")

    return """institution_id,course_id,name,institution_name,level,requirements,field_tags
inst-kwame,cs-bsc,BSc Computer Science,Kwame Polytechnic,undergraduate,"Minimum GPA 3.0, strong mathematics",Information Technology|Engineering
inst-kwame,ee-dip,Diploma in Electrical Engineering,Kwame Polytechnic,diploma,GPA: 2.5,Electrical & Electronics|Engineering
inst-kwame,biz-cert,Certificate in Business Administration,Kwame Polytechnic,certificate,,Business Management
inst-maseru,fashion-dip,Fashion Design,Maseru College of Arts,diploma,Portfolio of garments,Arts & Creative Design
inst-maseru,nursing-dip,Diploma in Nursing Science,Maseru College of Arts,diploma,Minimum GPA 2.8,Nursing & Aged Care|Healthcare & Medical
inst-maseru,retail-cert,Certificate in Retail Management,Maseru College of Arts,certificate,,Retail & Sales
"""
