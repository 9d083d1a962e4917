"""Create tables and seed demo users, applications and change requests."""
import os
import sys
from datetime import timedelta
from changetrack.core.config import settings
from changetrack.core.database import SessionLocal, engine
from changetrack.core.security import get_password_hash
from changetrack.core.store import ValidationRecordStore
from changetrack.core.time import utc_now
from changetrack.models import Application, Base, ChangeRequest, User, UserRole


DEMO_USERS = [
    {"email": "admin@example.com", "full_name": "Admin User", "role": UserRole.ADMIN},
    {"email": "manager@example.com", "full_name": "Morgan Lee", "role": UserRole.CHANGE_MANAGER},
    {"email": "owner1@example.com", "full_name": "Priya Raman", "role": UserRole.APPLICATION_OWNER},
    {"email": "owner2@example.com", "full_name": "Tomas Novak", "role": UserRole.APPLICATION_OWNER},
]

DEMO_APPLICATIONS = [
    {"name": "Customer Portal", "description": "Public self-service portal", "owner": "owner1@example.com"},
    {"name": "Billing Engine", "description": "Invoice generation and payments", "owner": "owner2@example.com"},
    {"name": "Reporting Warehouse", "description": "Nightly reporting loads", "owner": "owner1@example.com"},
    {"name": "Legacy Fax Gateway", "description": "Unowned legacy integration", "owner": None},
]


def get_seed_password() -> str:
    password = os.environ.get("SEED_PASSWORD")
    if password:
        return password
    if settings.is_production:
        print("FATAL: SEED_PASSWORD is required to seed users in production.", file=sys.stderr)
        sys.exit(1)
    return "password123"


def init_db() -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(bind=engine)


def seed_database():
    """Seed demo data. Safe to run repeatedly."""
    init_db()
    db = SessionLocal()
    store = ValidationRecordStore(db)

    try:
        print("Starting database seeding...")
        password_hash = get_password_hash(get_seed_password())

        users = {}
        for data in DEMO_USERS:
            user = db.query(User).filter(User.email == data["email"]).first()
            if not user:
                user = User(
                    email=data["email"],
                    full_name=data["full_name"],
                    password_hash=password_hash,
                    role=data["role"].value
                )
                db.add(user)
                db.commit()
                print(f"✓ Created {data['role'].value} user ({data['email']})")
            users[data["email"]] = user

        applications = {}
        for data in DEMO_APPLICATIONS:
            application = db.query(Application).filter(Application.name == data["name"]).first()
            if not application:
                owner = users.get(data["owner"]) if data["owner"] else None
                application = store.create_application(
                    name=data["name"],
                    description=data["description"],
                    owner_id=owner.user_id if owner else None,
                    created_by=users["admin@example.com"].user_id
                )
                print(f"✓ Created application {application.name}")
            applications[data["name"]] = application

        if db.query(ChangeRequest).count() == 0:
            manager = users["manager@example.com"]
            now = utc_now()
            store.create_change_request(
                manager_id=manager.user_id,
                change_id=f"CR-{now.year}-000001",
                title="Database patching",
                description="Quarterly database engine patch",
                change_type="Standard",
                start_time=now + timedelta(days=1),
                end_time=now + timedelta(days=1, hours=4),
                application_ids=[
                    applications["Customer Portal"].application_id,
                    applications["Billing Engine"].application_id,
                ],
            )
            store.create_change_request(
                manager_id=manager.user_id,
                title="Emergency certificate rotation",
                change_type="Emergency",
                start_time=now,
                end_time=now + timedelta(hours=2),
                application_ids=[applications["Reporting Warehouse"].application_id],
            )
            print("✓ Created demo change requests")
        else:
            print("✓ Change requests already exist")

        print("✓ Seeding complete")
    finally:
        db.close()


if __name__ == "__main__":
    seed_database()
