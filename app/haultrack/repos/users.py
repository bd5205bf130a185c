from sqlalchemy import func, select

from app.haultrack.db.models import User


class UserRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, user_id):
        return self.db.get(User, user_id)

    def get_by_email(self, email: str):
        stmt = select(User).where(func.lower(User.email) == email.strip().lower())
        return self.db.execute(stmt).scalars().first()

    def list_users(self, *, role: str | None = None, is_active: bool | None = None):
        stmt = select(User)
        if role:
            stmt = stmt.where(func.upper(User.role) == role.strip().upper())
        if is_active is not None:
            stmt = stmt.where(User.is_active.is_(is_active))
        return self.db.execute(stmt.order_by(User.name.asc())).scalars().all()

    def create(self, user: User) -> User:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user
