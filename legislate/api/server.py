from __future__ import annotations

import traceback
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Path, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from legislate import __version__
from legislate.admin import oversight
from legislate.auth import flows
from legislate.auth.crud import bootstrap_admin_if_needed
from legislate.auth.deps import get_current_user, require_admin, require_verified, require_verified_role
from legislate.auth.security import TokenSigner
from legislate.config import Config, load_config
from legislate.db import connect, init_db
from legislate.errors import AuthorizationError, LegislateError, NotFoundError, ValidationError
from legislate.matching import engine
from legislate.models import Role, User, public_request, public_user


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


router = APIRouter()

# Row ids are SQLite INTEGERs (signed 64-bit).
_MAX_ID = 2**63 - 1


def _cfg(request: Request) -> Config:
    return request.app.state.cfg


def _signer(request: Request) -> TokenSigner:
    return request.app.state.signer


class _Payload(BaseModel):
    # Accept the camelCase names the SPA sends; numbers sent for codes/phone numbers become strings.
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


# -----------------------------
# Health
# -----------------------------


@router.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


# -----------------------------
# Auth: admin
# -----------------------------


class AdminSetupTotpRequest(_Payload):
    uid: Optional[str] = None
    password: Optional[str] = None


class AdminLoginRequest(_Payload):
    adminname: Optional[str] = None
    password: Optional[str] = None
    otp: Optional[str] = None


class AdminCreateRequest(_Payload):
    adminname: Optional[str] = None
    uid: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


@router.post("/auth/admin/setup-totp")
def admin_setup_totp(payload: AdminSetupTotpRequest, cfg: Config = Depends(_cfg)) -> Dict[str, Any]:
    with connect(cfg.DB_PATH) as conn:
        enrollment = flows.setup_admin_totp(conn, cfg, uid=payload.uid, password=payload.password)
    return {"message": "totp_configured", "totp": enrollment.to_dict()}


@router.post("/auth/admin/login")
def admin_login(
    payload: AdminLoginRequest,
    cfg: Config = Depends(_cfg),
    signer: TokenSigner = Depends(_signer),
) -> Dict[str, Any]:
    with connect(cfg.DB_PATH) as conn:
        result = flows.login_admin(
            conn,
            cfg,
            signer,
            adminname=payload.adminname,
            password=payload.password,
            otp=payload.otp,
        )
    return result.to_dict()


@router.post("/auth/admin/create", status_code=201)
def admin_create(
    payload: AdminCreateRequest,
    cfg: Config = Depends(_cfg),
    _admin: User = Depends(require_admin),
) -> Dict[str, Any]:
    with connect(cfg.DB_PATH) as conn:
        admin, enrollment = flows.create_admin_account(
            conn,
            cfg,
            adminname=payload.adminname,
            uid=payload.uid,
            email=payload.email,
            password=payload.password,
        )
    return {"user": public_user(admin), "totp": enrollment.to_dict()}


# -----------------------------
# Auth: NGO / lawyer
# -----------------------------


class NgoRegisterRequest(_Payload):
    registration_number: Optional[str] = Field(default=None, alias="registrationNumber")
    name: Optional[str] = None
    email: Optional[str] = None


class NgoLoginRequest(_Payload):
    registration_number: Optional[str] = Field(default=None, alias="registrationNumber")
    otp: Optional[str] = None


class LawyerRegisterRequest(_Payload):
    name: Optional[str] = None
    enrollment_number: Optional[str] = Field(default=None, alias="enrollmentNumber")
    email: Optional[str] = None
    contact_number: Optional[str] = Field(default=None, alias="contactNumber")


class LawyerLoginRequest(_Payload):
    contact_number: Optional[str] = Field(default=None, alias="contactNumber")
    otp: Optional[str] = None


@router.post("/auth/ngo/register", status_code=201)
def ngo_register(payload: NgoRegisterRequest, cfg: Config = Depends(_cfg)) -> Dict[str, Any]:
    with connect(cfg.DB_PATH) as conn:
        user, enrollment = flows.register_ngo(
            conn,
            cfg,
            registration_number=payload.registration_number,
            name=payload.name,
            email=payload.email,
        )
    return {"user": public_user(user), "totp": enrollment.to_dict()}


@router.post("/auth/ngo/login")
def ngo_login(
    payload: NgoLoginRequest,
    cfg: Config = Depends(_cfg),
    signer: TokenSigner = Depends(_signer),
) -> Dict[str, Any]:
    with connect(cfg.DB_PATH) as conn:
        result = flows.login_provider(
            conn,
            cfg,
            signer,
            role=Role.NGO,
            identifier=payload.registration_number,
            otp=payload.otp,
        )
    return result.to_dict()


@router.post("/auth/lawyer/register", status_code=201)
def lawyer_register(payload: LawyerRegisterRequest, cfg: Config = Depends(_cfg)) -> Dict[str, Any]:
    with connect(cfg.DB_PATH) as conn:
        user, enrollment = flows.register_lawyer(
            conn,
            cfg,
            name=payload.name,
            enrollment_number=payload.enrollment_number,
            email=payload.email,
            contact_number=payload.contact_number,
        )
    return {"user": public_user(user), "totp": enrollment.to_dict()}


@router.post("/auth/lawyer/login")
def lawyer_login(
    payload: LawyerLoginRequest,
    cfg: Config = Depends(_cfg),
    signer: TokenSigner = Depends(_signer),
) -> Dict[str, Any]:
    with connect(cfg.DB_PATH) as conn:
        result = flows.login_provider(
            conn,
            cfg,
            signer,
            role=Role.LAWYER,
            identifier=payload.contact_number,
            otp=payload.otp,
        )
    return result.to_dict()


# -----------------------------
# Auth: individual
# -----------------------------


class IndividualRegisterRequest(_Payload):
    name: Optional[str] = None
    contact_number: Optional[str] = Field(default=None, alias="contactNumber")
    password: Optional[str] = None


class IndividualLoginRequest(_Payload):
    name: Optional[str] = None
    password: Optional[str] = None


@router.post("/auth/individual/register", status_code=201)
def individual_register(
    payload: IndividualRegisterRequest,
    cfg: Config = Depends(_cfg),
    signer: TokenSigner = Depends(_signer),
) -> Dict[str, Any]:
    with connect(cfg.DB_PATH) as conn:
        result = flows.register_individual(
            conn,
            cfg,
            signer,
            name=payload.name,
            contact_number=payload.contact_number,
            password=payload.password,
        )
    return result.to_dict()


@router.post("/auth/individual/login")
def individual_login(
    payload: IndividualLoginRequest,
    cfg: Config = Depends(_cfg),
    signer: TokenSigner = Depends(_signer),
) -> Dict[str, Any]:
    with connect(cfg.DB_PATH) as conn:
        result = flows.login_individual(conn, signer, name=payload.name, password=payload.password)
    return result.to_dict()


# -----------------------------
# Auth: session
# -----------------------------


@router.get("/auth/me")
def auth_me(user: User = Depends(get_current_user)) -> Dict[str, Any]:
    return {"user": public_user(user)}


@router.post("/auth/logout")
def auth_logout() -> Dict[str, Any]:
    """Tokens are stateless; the client drops its copy. Kept so the SPA has one logout call."""
    return {"ok": True}


# -----------------------------
# Admin
# -----------------------------


class VerifyRequest(_Payload):
    user_id: Optional[int] = Field(default=None, alias="userId", ge=1, le=_MAX_ID)
    action: Optional[str] = None


@router.get("/admin/stats")
def admin_stats(cfg: Config = Depends(_cfg), _admin: User = Depends(require_admin)) -> Dict[str, Any]:
    with connect(cfg.DB_PATH) as conn:
        return oversight.stats(conn)


@router.get("/admin/pending")
def admin_pending(cfg: Config = Depends(_cfg), _admin: User = Depends(require_admin)) -> Dict[str, Any]:
    with connect(cfg.DB_PATH) as conn:
        return oversight.pending_approvals(conn)


@router.post("/admin/verify")
def admin_verify(
    payload: VerifyRequest,
    cfg: Config = Depends(_cfg),
    admin: User = Depends(require_admin),
) -> Dict[str, Any]:
    if payload.user_id is None or not (payload.action or "").strip():
        raise ValidationError("missing_fields: userId, action")
    action = oversight.parse_action(payload.action)
    with connect(cfg.DB_PATH) as conn:
        user = oversight.verify_user(conn, payload.user_id, action)
    _debug(f"admin id={admin.id} set user id={user.id} to {action.value}")
    return {"user": public_user(user)}


# -----------------------------
# Directory
# -----------------------------


@router.get("/users")
def list_users(
    role: Optional[str] = Query(None),
    cfg: Config = Depends(_cfg),
    _user: User = Depends(require_verified_role(Role.INDIVIDUAL)),
) -> Dict[str, Any]:
    provider_role = engine.parse_provider_role(role)
    with connect(cfg.DB_PATH) as conn:
        return {"users": engine.list_verified_providers(conn, provider_role)}


# -----------------------------
# Requests / connections
# -----------------------------


class CreateConnectionRequest(_Payload):
    target_id: Optional[int] = Field(default=None, alias="targetId", ge=1, le=_MAX_ID)
    target_role: Optional[str] = Field(default=None, alias="targetRole")


class TransitionRequest(_Payload):
    status: Optional[str] = None


@router.post("/requests", status_code=201)
def create_request(
    payload: CreateConnectionRequest,
    cfg: Config = Depends(_cfg),
    user: User = Depends(require_verified_role(Role.INDIVIDUAL)),
) -> Dict[str, Any]:
    if payload.target_id is None or not (payload.target_role or "").strip():
        raise ValidationError("missing_fields: targetId, targetRole")
    target_role = engine.parse_provider_role(payload.target_role)
    with connect(cfg.DB_PATH) as conn:
        req = engine.create_request(conn, user, target_id=payload.target_id, target_role=target_role)
    return {"request": public_request(req)}


@router.get("/requests/assigned")
def requests_assigned(
    cfg: Config = Depends(_cfg),
    user: User = Depends(require_verified_role(Role.NGO, Role.LAWYER)),
) -> Dict[str, Any]:
    with connect(cfg.DB_PATH) as conn:
        return {"requests": engine.list_for_target(conn, user)}


@router.get("/requests/mine")
def requests_mine(
    cfg: Config = Depends(_cfg),
    user: User = Depends(require_verified_role(Role.INDIVIDUAL)),
) -> Dict[str, Any]:
    with connect(cfg.DB_PATH) as conn:
        return {"requests": engine.list_for_requester(conn, user.id)}


@router.get("/requests/connections")
def requests_connections(
    cfg: Config = Depends(_cfg),
    user: User = Depends(require_verified),
) -> Dict[str, Any]:
    with connect(cfg.DB_PATH) as conn:
        return {"connections": engine.list_connections(conn, user)}


@router.put("/requests/{request_id}")
def update_request(
    payload: TransitionRequest,
    request_id: int = Path(..., ge=1, le=_MAX_ID),
    cfg: Config = Depends(_cfg),
    user: User = Depends(require_verified_role(Role.NGO, Role.LAWYER)),
) -> Dict[str, Any]:
    new_status = engine.parse_transition(payload.status)
    with connect(cfg.DB_PATH) as conn:
        existing = engine.get_request(conn, request_id)
        if existing is None:
            raise NotFoundError("request_not_found")
        if existing.target_id != user.id:
            raise AuthorizationError("not_request_target")
        req = engine.transition_status(conn, request_id, new_status)
    return {"request": public_request(req)}


# -----------------------------
# App
# -----------------------------


@asynccontextmanager
async def _lifespan(app: FastAPI):
    cfg: Config = app.state.cfg

    # Ensure schema exists.
    init_db(cfg.DB_PATH)

    # Resolve (or generate + persist) the signing secret before serving anything.
    app.state.signer.ensure_secret()

    # Seed the default admin if there is none.
    boot = bootstrap_admin_if_needed(cfg)
    if boot:
        _debug(f"Bootstrapped default admin: adminname={boot.adminname} (TOTP not configured)")
    yield


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(LegislateError)
    async def _legislate_error(request: Request, exc: LegislateError) -> JSONResponse:
        if app.state.cfg.DEBUG_ERRORS:
            _debug(f"{request.method} {request.url.path} -> {exc.status_code} {exc.detail}")
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=headers)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errs = exc.errors()
        first = errs[0] if errs else {}
        loc = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "path", "query"))
        detail = f"invalid_field: {loc}" if loc else "invalid_request"
        return JSONResponse({"error": detail}, status_code=400)

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        _debug(f"Unhandled error on {request.method} {request.url.path}: {exc!r}")
        _debug(traceback.format_exc())
        return JSONResponse({"error": "internal_error"}, status_code=500)


def create_app(cfg: Optional[Config] = None) -> FastAPI:
    cfg = cfg or load_config()

    app = FastAPI(title="Legislate Legal Aid API", version=__version__, lifespan=_lifespan)
    app.state.cfg = cfg
    app.state.signer = TokenSigner.from_config(cfg)

    # CORS is mainly needed for local development (Vite on :5173 -> API on :8000).
    cors_origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    _install_error_handlers(app)
    app.include_router(router)
    return app


app = create_app()
