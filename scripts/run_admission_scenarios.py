from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy.pool import StaticPool

from config import configure_logging
from db import build_engine, build_session_factory, db_session, init_schema
from engine import AllocationEngine
from errors import AllocationError
from seed import reset_and_seed


class PrintingNotifier:
    def deliver(self, payload: dict[str, Any]) -> None:
        print(f"  -> notify {payload['userId']}: {payload['title']} ({payload['link']})")


def attempt(label: str, func, *args: Any) -> Any:
    try:
        result = func(*args)
    except AllocationError as exc:
        print(f"{label}: REFUSED [{exc.kind}] {exc.message}")
        return None
    print(f"{label}: OK {result}")
    return result


def main() -> None:
    configure_logging("WARNING")
    store = build_engine("sqlite://", poolclass=StaticPool)
    init_schema(store)
    factory = build_session_factory(store)
    with db_session(factory) as db:
        reset_and_seed(db)

    engine = AllocationEngine(factory, PrintingNotifier())

    print("\n=== Submissions ===")
    ama_cs = attempt("Ama -> Kwame BSc Computer Science", engine.submit_course_application, "stu-ama", "inst-kwame", "cs-bsc")
    attempt("Ama -> Kwame Electrical Diploma", engine.submit_course_application, "stu-ama", "inst-kwame", "ee-dip")
    attempt("Ama -> Kwame Business Certificate", engine.submit_course_application, "stu-ama", "inst-kwame", "biz-cert")
    attempt("Ama -> Kwame BSc Computer Science again", engine.submit_course_application, "stu-ama", "inst-kwame", "cs-bsc")
    ama_nursing = attempt("Ama -> Maseru Nursing", engine.submit_course_application, "stu-ama", "inst-maseru", "nursing-dip")
    kojo_cs = attempt("Kojo -> Kwame BSc Computer Science", engine.submit_course_application, "stu-kojo", "inst-kwame", "cs-bsc")
    attempt("Lerato -> Maseru Fashion Design", engine.submit_course_application, "stu-lerato", "inst-maseru", "fashion-dip")
    attempt("Thabo -> Kwame Business Certificate", engine.submit_course_application, "stu-thabo", "inst-kwame", "biz-cert")

    if not (ama_cs and ama_nursing and kojo_cs):
        print("Scenario data did not seed as expected; stopping.")
        return

    print("\n=== Institution review ===")
    print("Kojo preview:", engine.preview_review_score("inst-kwame", kojo_cs.application_id))
    attempt("Kwame accepts Kojo", engine.review_course_application, "inst-kwame", kojo_cs.application_id, "accept")
    attempt("Kwame waitlists Kojo", engine.review_course_application, "inst-kwame", kojo_cs.application_id, "waitlist")
    attempt("Kwame accepts Ama", engine.review_course_application, "inst-kwame", ama_cs.application_id, "accept")
    attempt("Maseru accepts Ama", engine.review_course_application, "inst-maseru", ama_nursing.application_id, "accept")

    print("\n=== Final admission ===")
    result = attempt("Ama selects Maseru Nursing", engine.select_final_admission, "stu-ama", ama_nursing.application_id)
    if result:
        print(f"Declined {len(result.declined_application_ids)}, promoted {result.promoted_waitlists}")

    print("\n=== Final statuses ===")
    for student_id in ("stu-ama", "stu-kojo", "stu-lerato"):
        for application in engine.student_course_applications(student_id):
            print(
                f"{student_id}: {application.institution_id}/{application.course_id} -> {application.status} "
                f"(qualification={application.qualification_score}, review={application.review_score})"
            )


if __name__ == "__main__":
    main()
