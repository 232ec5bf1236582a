from fastapi import APIRouter, Cookie, Depends, Header, HTTPException, Request, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.user import ModuleId, User
from app.services import access_service, auth_service

router = APIRouter(prefix="/auth", tags=["Auth"])


class LoginRequest(BaseModel):
    username: str
    password: str


class UserOut(BaseModel):
    id: str
    username: str
    display_name: str
    email: str = ""
    role: str
    active: bool = True
    requires_password_change: bool = False
    created_at: str = ""


class CreateUserRequest(BaseModel):
    username: str
    password: str
    display_name: str = ""
    email: str = ""
    role: str = "staff"


class UpdateUserRequest(BaseModel):
    display_name: str | None = None
    email: str | None = None
    role: str | None = None


class ChangePasswordRequest(BaseModel):
    password: str


class ModuleAccessUpdate(BaseModel):
    modules: dict[str, str]  # module id -> read-write, read-only, no-access


class ActivityLogOut(BaseModel):
    id: str
    user_id: str
    username: str
    action: str
    detail: str
    ip_address: str
    created_at: str

    model_config = {"from_attributes": True}


def _user_out(u: User) -> UserOut:
    return UserOut(
        id=u.id, username=u.username, display_name=u.display_name, email=u.email or "",
        role=u.role, active=u.active, requires_password_change=bool(u.requires_password_change),
        created_at=u.created_at.isoformat() if u.created_at else "",
    )


def get_current_user(
    request: Request,
    token: str | None = Cookie(default=None, alias="token"),
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """Dependency: extract user from JWT cookie or Bearer header."""
    if not token and authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    if not token:
        raise HTTPException(401, "Not authenticated")
    payload = auth_service.decode_token(token)
    if not payload:
        raise HTTPException(401, "Invalid or expired token")
    user = auth_service.get_user_by_id(db, payload["sub"])
    if not user or not user.active:
        raise HTTPException(401, "User not found or disabled")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        raise HTTPException(403, "Admin only")
    return user


def require_module(module: ModuleId, write: bool = False):
    """Dependency factory: the current user needs read (or write) access to the module."""

    def dependency(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> User:
        if not access_service.has_access(db, user, module, write=write):
            needed = "Write" if write else "Read"
            raise HTTPException(403, f"{needed} access to {module.value} required")
        return user

    return dependency


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else ""


@router.post("/login")
def login(data: LoginRequest, request: Request, response: Response, db: Session = Depends(get_db)):
    user = auth_service.authenticate(db, data.username, data.password)
    if not user:
        raise HTTPException(401, "Invalid username or password")
    token = auth_service.create_access_token(user.id, user.username)
    response.set_cookie("token", token, httponly=True, samesite="lax", max_age=3600 * settings.ACCESS_TOKEN_EXPIRE_HOURS)
    auth_service.log_activity(db, user.id, user.username, "login", ip=_client_ip(request))
    return {"token": token, "user": _user_out(user)}


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie("token")
    return {"ok": True}


@router.get("/me")
def me(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"user": _user_out(user), "modules": access_service.get_module_access(db, user)}


@router.post("/change-password")
def change_own_password(data: ChangePasswordRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        auth_service.set_password(db, user, data.password)
    except ValueError as e:
        raise HTTPException(400, str(e))
    auth_service.log_activity(db, user.id, user.username, "change_password")
    return {"ok": True}


@router.get("/modules")
def list_modules(user: User = Depends(get_current_user)):
    return access_service.list_modules()


# Admin: users

@router.get("/users")
def list_users(user: User = Depends(require_admin), db: Session = Depends(get_db)):
    return [_user_out(u) for u in auth_service.list_users(db)]


@router.post("/users", status_code=201)
def create_user(data: CreateUserRequest, user: User = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        u = auth_service.create_user(db, data.username, data.password, data.display_name, data.role, email=data.email)
    except ValueError as e:
        raise HTTPException(400, str(e))
    auth_service.log_activity(db, user.id, user.username, "create_user", detail=f"Created user: {u.username}")
    return _user_out(u)


@router.patch("/users/{user_id}")
def update_user(user_id: str, data: UpdateUserRequest, user: User = Depends(require_admin), db: Session = Depends(get_db)):
    target = auth_service.get_user_by_id(db, user_id)
    if not target:
        raise HTTPException(404, "User not found")
    if target.id == user.id and data.role is not None and data.role != "admin":
        raise HTTPException(400, "Cannot remove your own admin role")
    try:
        target = auth_service.update_user(db, target, data.display_name, data.role, data.email)
    except ValueError as e:
        raise HTTPException(400, str(e))
    auth_service.log_activity(db, user.id, user.username, "update_user", detail=f"Updated {target.username}: role={target.role}")
    return _user_out(target)


@router.patch("/users/{user_id}/active")
def toggle_user_active(user_id: str, user: User = Depends(require_admin), db: Session = Depends(get_db)):
    target = auth_service.get_user_by_id(db, user_id)
    if not target:
        raise HTTPException(404, "User not found")
    if target.id == user.id:
        raise HTTPException(400, "Cannot disable yourself")
    target.active = not target.active
    db.commit()
    db.refresh(target)
    status = "enabled" if target.active else "disabled"
    auth_service.log_activity(db, user.id, user.username, "toggle_user", detail=f"{target.username} -> {status}")
    return {"id": target.id, "active": target.active}


@router.post("/users/{user_id}/reset-password")
def reset_password(user_id: str, data: ChangePasswordRequest, user: User = Depends(require_admin), db: Session = Depends(get_db)):
    target = auth_service.get_user_by_id(db, user_id)
    if not target:
        raise HTTPException(404, "User not found")
    try:
        auth_service.set_password(db, target, data.password, requires_change=True)
    except ValueError as e:
        raise HTTPException(400, str(e))
    auth_service.log_activity(db, user.id, user.username, "reset_password", detail=f"Reset password for {target.username}")
    return {"ok": True}


# Admin: module access

@router.get("/users/{user_id}/modules")
def get_user_modules(user_id: str, user: User = Depends(require_admin), db: Session = Depends(get_db)):
    target = auth_service.get_user_by_id(db, user_id)
    if not target:
        raise HTTPException(404, "User not found")
    return access_service.get_module_access(db, target)


@router.put("/users/{user_id}/modules")
def set_user_modules(
    user_id: str, data: ModuleAccessUpdate, user: User = Depends(require_admin), db: Session = Depends(get_db)
):
    target = auth_service.get_user_by_id(db, user_id)
    if not target:
        raise HTTPException(404, "User not found")
    try:
        levels = access_service.set_module_access(db, target.id, data.modules, assigned_by=user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))
    detail = ", ".join(f"{m}={lvl}" for m, lvl in sorted(data.modules.items()))
    auth_service.log_activity(db, user.id, user.username, "set_module_access", detail=f"{target.username}: {detail}")
    return levels


@router.get("/activity", response_model=list[ActivityLogOut])
def activity_logs(
    limit: int = 100,
    user_id: str | None = None,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    logs = auth_service.get_activity_logs(db, limit=limit, user_id=user_id)
    return [
        ActivityLogOut(
            id=l.id,
            user_id=l.user_id,
            username=l.username,
            action=l.action,
            detail=l.detail,
            ip_address=l.ip_address,
            created_at=l.created_at.isoformat() if l.created_at else "",
        )
        for l in logs
    ]
