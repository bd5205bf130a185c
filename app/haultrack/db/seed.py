from app.haultrack.core.config import settings
from app.haultrack.core.enums import UserRole
from app.haultrack.db.models import User
from app.haultrack.db.session import SessionLocal
from app.haultrack.repos.users import UserRepository


def _get_or_create_admin(db):
    email = settings.SEED_ADMIN_EMAIL.strip().lower()
    user = UserRepository(db).get_by_email(email)
    if user:
        return user
    user = User(
        email=email,
        name=settings.SEED_ADMIN_NAME,
        role=UserRole.ADMIN.value,
        is_active=True,
    )
    db.add(user)
    return user


def run_seed(db):
    admin = _get_or_create_admin(db)
    db.commit()
    return admin


if __name__ == "__main__":
    with SessionLocal() as session:
        seeded = run_seed(session)
        print(f"admin user: {seeded.id} <{seeded.email}>")
