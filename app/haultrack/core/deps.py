from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from jose import JWTError
from pydantic import ValidationError

from app.haultrack.core.context import RequestContext
from app.haultrack.core.enums import UserRole
from app.haultrack.core.error_catalog import AppError, ErrorCatalog
from app.haultrack.core.metrics import metrics
from app.haultrack.core.security import TokenData, bearer_scheme, decode_token
from app.haultrack.db.session import get_db
from app.haultrack.repos.users import UserRepository


def get_current_token_data(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> TokenData:
    if credentials is None:
        raise AppError(ErrorCatalog.INVALID_TOKEN)
    try:
        payload = decode_token(credentials.credentials)
        return TokenData(**payload)
    except (JWTError, ValidationError, TypeError) as exc:
        raise AppError(ErrorCatalog.INVALID_TOKEN) from exc


def require_active_user(token_data: TokenData = Depends(get_current_token_data), db=Depends(get_db)):
    user = UserRepository(db).get_by_id(token_data.sub)
    if user is None:
        raise AppError(ErrorCatalog.INVALID_TOKEN)
    if not user.is_active:
        raise AppError(ErrorCatalog.USER_INACTIVE)
    return user


def require_request_context(request: Request, user=Depends(require_active_user)) -> RequestContext:
    context = RequestContext(
        user_id=str(user.id),
        role=user.role,
        trace_id=getattr(request.state, "trace_id", ""),
    )
    request.state.context = context
    request.state.user_id = context.user_id
    return context


def require_role(*roles: UserRole):
    allowed = {role.value for role in roles}

    def dependency(context: RequestContext = Depends(require_request_context)) -> RequestContext:
        if context.role.upper() not in allowed:
            metrics.increment_permission_denied()
            raise AppError(ErrorCatalog.PERMISSION_DENIED, details={"required_roles": sorted(allowed)})
        return context

    return dependency


require_admin = require_role(UserRole.ADMIN)


__all__ = [
    "get_current_token_data",
    "require_active_user",
    "require_request_context",
    "require_role",
    "require_admin",
]
