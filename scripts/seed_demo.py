from datetime import date, timedelta

from sqlalchemy.orm import Session

from evidence_engine.core.enums import Dimension, PeriodStatus
from evidence_engine.core.logging import setup_logging
from evidence_engine.db.base import Base
from evidence_engine.db.session import SessionLocal, engine
from evidence_engine.models.employee import Employee
from evidence_engine.models.evaluation_period import EvaluationPeriod
from evidence_engine.models.evidence_entry import EvidenceEntry
from evidence_engine.models.user import User

PERIOD_START = date(2026, 1, 1)
PERIOD_END = date(2026, 6, 30)


def get_or_create_user(db: Session, email: str, full_name: str, is_admin_flag: bool = False) -> User:
    u = db.query(User).filter(User.email == email).one_or_none()
    if u:
        return u
    u = User(email=email, full_name=full_name, is_active=True, is_admin=is_admin_flag)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def get_or_create_employee(
    db: Session, employee_number: str, display_name: str, user_id=None, manager_id=None
) -> Employee:
    e = db.query(Employee).filter(Employee.employee_number == employee_number).one_or_none()
    if e:
        # ensure links if provided
        if (user_id and e.user_id != user_id) or (manager_id and e.manager_id != manager_id):
            e.user_id = user_id or e.user_id
            e.manager_id = manager_id or e.manager_id
            db.commit()
            db.refresh(e)
        return e

    e = Employee(
        employee_number=employee_number,
        display_name=display_name,
        user_id=user_id,
        manager_id=manager_id,
    )
    db.add(e)
    db.commit()
    db.refresh(e)
    return e


def get_or_create_period(db: Session, name: str, created_by_user_id) -> EvaluationPeriod:
    p = db.query(EvaluationPeriod).filter(EvaluationPeriod.name == name).one_or_none()
    if p:
        return p
    p = EvaluationPeriod(
        name=name,
        start_date=PERIOD_START,
        end_date=PERIOD_END,
        status=PeriodStatus.DRAFT.value,
        created_by_user_id=created_by_user_id,
    )
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


def seed_evidence(db: Session, employee: Employee, manager: Employee, ratings: dict[Dimension, list[int]]) -> int:
    """Spread ratings evenly across the period. Skipped when the employee already has evidence."""
    existing = db.query(EvidenceEntry).filter(EvidenceEntry.employee_id == employee.id).count()
    if existing:
        return 0

    span = (PERIOD_END - PERIOD_START).days
    created = 0
    for dimension, stars in ratings.items():
        for i, star in enumerate(stars):
            db.add(
                EvidenceEntry(
                    employee_id=employee.id,
                    manager_id=manager.id,
                    dimension=dimension.value,
                    star_rating=star,
                    content=f"{dimension.label} observation #{i + 1} for {employee.display_name}",
                    entry_date=PERIOD_START + timedelta(days=(span * (i + 1)) // (len(stars) + 1)),
                )
            )
            created += 1
    db.commit()
    return created


def main():
    setup_logging(json_output=False)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        # ---- Users ----
        hr_user = get_or_create_user(db, "hr@local.test", "HR Admin", is_admin_flag=True)
        manager_user = get_or_create_user(db, "manager@local.test", "Manager Local")
        alice_user = get_or_create_user(db, "alice@local.test", "Alice Local")
        bob_user = get_or_create_user(db, "bob@local.test", "Bob Local")

        # ---- Employees ----
        manager = get_or_create_employee(db, "E100", "Manager Local", user_id=manager_user.id)
        alice = get_or_create_employee(db, "E200", "Alice Local", user_id=alice_user.id, manager_id=manager.id)
        bob = get_or_create_employee(db, "E300", "Bob Local", user_id=bob_user.id, manager_id=manager.id)

        # ---- Period (draft until initialized) ----
        period = get_or_create_period(db, "H1 2026", created_by_user_id=hr_user.id)

        # ---- Evidence ----
        n_alice = seed_evidence(
            db,
            alice,
            manager,
            {
                Dimension.KPIS: [5, 4, 5, 4, 5, 4, 4, 5],
                Dimension.COMPETENCIES: [4, 4, 3, 5],
                Dimension.RESPONSIBILITIES: [4, 5, 4],
                Dimension.VALUES: [5, 5],
            },
        )
        n_bob = seed_evidence(
            db,
            bob,
            manager,
            {
                Dimension.KPIS: [3, 2, 3],
                Dimension.RESPONSIBILITIES: [2, 3],
            },
        )

        print("\n=== Demo Seed Complete ===")
        print("Users (use as X-User-Email header):")
        print(f"  hr admin: {hr_user.email}")
        print(f"  manager:  {manager_user.email}")
        print(f"  alice:    {alice_user.email}")
        print(f"  bob:      {bob_user.email}")

        print("\nPeriod:")
        print(f"  period_id: {period.id}")
        print(f"  window:    {period.start_date} .. {period.end_date}")
        print(f"  status:    {period.status}")

        print("\nEvidence created:")
        print(f"  alice (employee_id={alice.id}): {n_alice}")
        print(f"  bob   (employee_id={bob.id}): {n_bob}")

        print("\nNext actions:")
        print("  1) (HR) Initialize: POST /periods/{period_id}/initialize")
        print("  2) (Employee) Score: PUT /evaluations/{evaluation_id}/scores")
        print("  3) (Employee) Submit: POST /evaluations/{evaluation_id}/submit-self")
        print("  4) (Manager) Start review: POST /evaluations/{evaluation_id}/manager-evaluation")
        print("  5) (Manager) Score + submit: POST /evaluations/{manager_evaluation_id}/submit-manager")
        print()

    finally:
        db.close()


if __name__ == "__main__":
    main()
