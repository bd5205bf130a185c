import uuid

from fastapi import APIRouter, Depends, Query

from app.haultrack.core.context import RequestContext
from app.haultrack.core.deps import require_admin, require_active_user
from app.haultrack.core.enums import UserRole
from app.haultrack.core.error_catalog import AppError, ErrorCatalog
from app.haultrack.db.models import User
from app.haultrack.db.session import get_db
from app.haultrack.repos.users import UserRepository
from app.haultrack.routers.responses import user_response
from app.haultrack.schemas.users import UserCreateRequest, UserResponse

router = APIRouter()


@router.get("/api/users/me", response_model=UserResponse)
def get_me(user=Depends(require_active_user)):
    return user_response(user)


@router.get("/api/users", response_model=list[UserResponse])
def list_users(
    _context: RequestContext = Depends(require_admin),
    db=Depends(get_db),
    role: UserRole | None = Query(default=None),
    is_active: bool | None = Query(default=None),
):
    rows = UserRepository(db).list_users(role=role.value if role else None, is_active=is_active)
    return [user_response(row) for row in rows]


@router.post("/api/users", response_model=UserResponse, status_code=201)
def create_user(
    payload: UserCreateRequest,
    _context: RequestContext = Depends(require_admin),
    db=Depends(get_db),
):
    repo = UserRepository(db)
    if repo.get_by_email(payload.email) is not None:
        raise AppError(ErrorCatalog.USER_ALREADY_EXISTS, details={"email": payload.email.strip().lower()})
    user = User(
        id=uuid.uuid4(),
        email=payload.email.strip().lower(),
        name=payload.name,
        phone=payload.phone,
        role=payload.role.value,
        is_active=True,
    )
    return user_response(repo.create(user))
