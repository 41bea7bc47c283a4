"""Insurance Services API: FastAPI application factory and routes."""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.insurance_api.auth_utils import AdminPredicate, header_role_is_admin, require_admin
from src.insurance_api.config import Settings, settings as default_settings
from src.insurance_api.db import Database, UniqueConstraintError, get_db
from src.insurance_api.errors import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    UnhandledErrorMiddleware,
    register_exception_handlers,
)
from src.insurance_api.schemas import (
    FAQ,
    AdminServiceRequest,
    ErrorResponse,
    FAQCreate,
    HealthResponse,
    Insurance,
    InsuranceCreate,
    Law,
    LawCreate,
    LoginRequest,
    MyServiceRequest,
    RegisterRequest,
    RoleUpdate,
    ServiceRequest,
    ServiceRequestCreate,
    StatusUpdate,
    User,
    UserRole,
)

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "Health", "description": "Service health checks."},
    {"name": "Auth", "description": "Registration and login."},
    {"name": "Catalog", "description": "Insurance products, laws and FAQ entries."},
    {"name": "Requests", "description": "Service requests submitted by users."},
    {"name": "Admin", "description": "Catalog management, user roles and request statuses. Requires `X-Role: ADMIN`."},
]

_errors = {code: {"model": ErrorResponse} for code in (400, 401, 403, 404, 409, 500)}

router = APIRouter(prefix="/api", responses={500: _errors[500]})


def _missing(*values: Any) -> bool:
    return not all(values)


# =========================
# Health
# =========================

@router.get("/health", response_model=HealthResponse, tags=["Health"], summary="Health check")
def health_check() -> Dict[str, bool]:
    """Liveness check; does not touch the database."""
    return {"ok": True}


# =========================
# Auth
# =========================

@router.post(
    "/register",
    response_model=User,
    tags=["Auth"],
    summary="Register",
    responses={400: _errors[400], 409: _errors[409]},
)
def register(payload: Optional[RegisterRequest] = None, db: Database = Depends(get_db)) -> Dict[str, Any]:
    """Create a USER account. The email is stored lower-cased."""
    payload = payload or RegisterRequest()
    if _missing(payload.name, payload.email, payload.password):
        raise BadRequestError("MISSING_FIELDS")

    try:
        return db.execute_returning_one(
            """
            INSERT INTO users (name, email, password, role)
            VALUES (%s, %s, %s, 'USER')
            RETURNING id, name, email, role
            """,
            [payload.name, payload.email.lower(), payload.password],
        )
    except UniqueConstraintError as exc:
        logger.info("Registration rejected, email already exists (%s)", exc.constraint)
        raise ConflictError("EMAIL_EXISTS") from exc


@router.post(
    "/login",
    response_model=User,
    tags=["Auth"],
    summary="Login",
    responses={400: _errors[400], 401: _errors[401]},
)
def login(payload: Optional[LoginRequest] = None, db: Database = Depends(get_db)) -> Dict[str, Any]:
    """Return the user whose email and password both match."""
    payload = payload or LoginRequest()
    if _missing(payload.email, payload.password):
        raise BadRequestError("MISSING_FIELDS")

    # Passwords are stored and compared as plaintext.
    user = db.fetch_one(
        "SELECT id, name, email, role FROM users WHERE email=%s AND password=%s",
        [payload.email.lower(), payload.password],
    )
    if not user:
        raise UnauthorizedError("INVALID")
    return user


# =========================
# Catalog
# =========================

@router.get("/insurance", response_model=List[Insurance], tags=["Catalog"], summary="List insurance products")
def list_insurance(db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
    return db.fetch_all("SELECT * FROM insurance ORDER BY id DESC")


@router.get("/laws", response_model=List[Law], tags=["Catalog"], summary="List laws")
def list_laws(db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
    return db.fetch_all("SELECT * FROM laws ORDER BY id DESC")


@router.get("/faq", response_model=List[FAQ], tags=["Catalog"], summary="List FAQ entries")
def list_faq(db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
    return db.fetch_all("SELECT * FROM faq ORDER BY id DESC")


# =========================
# Requests
# =========================

@router.post(
    "/requests",
    response_model=ServiceRequest,
    tags=["Requests"],
    summary="Submit a service request",
    responses={400: _errors[400]},
)
def create_request(payload: Optional[ServiceRequestCreate] = None, db: Database = Depends(get_db)) -> Dict[str, Any]:
    """Create a service request for a user, optionally linked to an insurance product."""
    payload = payload or ServiceRequestCreate()
    if _missing(payload.user_id, payload.full_name, payload.phone, payload.car_model, payload.car_year):
        raise BadRequestError("MISSING_FIELDS")

    return db.execute_returning_one(
        """
        INSERT INTO requests (user_id, insurance_id, full_name, phone, car_model, car_year, notes)
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        RETURNING *
        """,
        [
            payload.user_id,
            payload.insurance_id or None,
            payload.full_name,
            payload.phone,
            payload.car_model,
            payload.car_year,
            payload.notes or None,
        ],
    )


@router.get(
    "/requests/my/{user_id}",
    response_model=List[MyServiceRequest],
    tags=["Requests"],
    summary="List a user's service requests",
)
def my_requests(user_id: int, db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
    """List requests owned by a user, newest first, with the linked insurance titles."""
    return db.fetch_all(
        """
        SELECT r.*, i.title_en, i.title_ar
        FROM requests r
        LEFT JOIN insurance i ON i.id = r.insurance_id
        WHERE r.user_id=%s
        ORDER BY r.id DESC
        """,
        [user_id],
    )


# =========================
# Admin
# =========================

admin_router = APIRouter(prefix="/admin", tags=["Admin"], responses={403: _errors[403]})


@admin_router.post("/insurance", response_model=Insurance, summary="Create insurance product", responses={400: _errors[400]})
def admin_create_insurance(
    _: None = Depends(require_admin),
    payload: Optional[InsuranceCreate] = None,
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Admin: create an insurance product. Only price_from is required."""
    payload = payload or InsuranceCreate()
    if payload.price_from is None:
        raise BadRequestError("MISSING_FIELDS")

    return db.execute_returning_one(
        """
        INSERT INTO insurance (title_ar, title_en, category_ar, category_en, price_from, description_ar, description_en)
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        RETURNING *
        """,
        [
            payload.title_ar or None,
            payload.title_en or None,
            payload.category_ar or None,
            payload.category_en or None,
            payload.price_from,
            payload.description_ar or None,
            payload.description_en or None,
        ],
    )


@admin_router.post("/laws", response_model=Law, summary="Create law")
def admin_create_law(
    _: None = Depends(require_admin),
    payload: Optional[LawCreate] = None,
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Admin: create a law entry."""
    payload = payload or LawCreate()
    return db.execute_returning_one(
        """
        INSERT INTO laws (title_ar, title_en, description_ar, description_en)
        VALUES (%s, %s, %s, %s)
        RETURNING *
        """,
        [payload.title_ar or None, payload.title_en or None, payload.description_ar or None, payload.description_en or None],
    )


@admin_router.post("/faq", response_model=FAQ, summary="Create FAQ entry")
def admin_create_faq(
    _: None = Depends(require_admin),
    payload: Optional[FAQCreate] = None,
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Admin: create an FAQ entry."""
    payload = payload or FAQCreate()
    return db.execute_returning_one(
        """
        INSERT INTO faq (question_ar, question_en, answer_ar, answer_en)
        VALUES (%s, %s, %s, %s)
        RETURNING *
        """,
        [payload.question_ar or None, payload.question_en or None, payload.answer_ar or None, payload.answer_en or None],
    )


@admin_router.get("/users", response_model=List[User], summary="List users")
def admin_list_users(_: None = Depends(require_admin), db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
    return db.fetch_all("SELECT id, name, email, role FROM users ORDER BY id DESC")


@admin_router.patch(
    "/users/{user_id}/role",
    response_model=User,
    summary="Change a user's role",
    responses={400: _errors[400], 404: _errors[404]},
)
def admin_update_role(
    user_id: int,
    _: None = Depends(require_admin),
    payload: Optional[RoleUpdate] = None,
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Admin: set a user's role to ADMIN or USER."""
    role = (payload or RoleUpdate()).role
    if role not in {r.value for r in UserRole}:
        raise BadRequestError("BAD_ROLE")

    user = db.execute_returning(
        "UPDATE users SET role=%s WHERE id=%s RETURNING id, name, email, role",
        [role, user_id],
    )
    if not user:
        raise NotFoundError()
    return user


@admin_router.get("/requests", response_model=List[AdminServiceRequest], summary="List all service requests")
def admin_list_requests(_: None = Depends(require_admin), db: Database = Depends(get_db)) -> List[Dict[str, Any]]:
    """Admin: every request with its owner and linked insurance titles."""
    return db.fetch_all(
        """
        SELECT r.*,
               u.name AS user_name, u.email AS user_email,
               i.title_en AS ins_title_en, i.title_ar AS ins_title_ar
        FROM requests r
        JOIN users u ON u.id = r.user_id
        LEFT JOIN insurance i ON i.id = r.insurance_id
        ORDER BY r.id DESC
        """
    )


@admin_router.patch(
    "/requests/{request_id}/status",
    response_model=ServiceRequest,
    summary="Change a request's status",
    responses={400: _errors[400], 404: _errors[404]},
)
def admin_update_status(
    request_id: int,
    _: None = Depends(require_admin),
    payload: Optional[StatusUpdate] = None,
    db: Database = Depends(get_db),
) -> Dict[str, Any]:
    """Admin: set a request's status. Any non-empty string is accepted."""
    status = (payload or StatusUpdate()).status
    if not status:
        raise BadRequestError("MISSING_STATUS")

    updated = db.execute_returning(
        "UPDATE requests SET status=%s WHERE id=%s RETURNING *",
        [status, request_id],
    )
    if not updated:
        raise NotFoundError()
    return updated


router.include_router(admin_router)


# =========================
# Application
# =========================

def _configure_logging(settings: Settings) -> None:
    level = logging.DEBUG if settings.is_development else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    admin_predicate: AdminPredicate = header_role_is_admin,
) -> FastAPI:
    """
    Build the FastAPI application.

    The database pool is opened when the app starts and closed when it stops.
    Pass ``database`` to supply a pre-built instance instead of one built
    from settings, and ``admin_predicate`` to replace the X-Role header check.
    """
    settings = settings or default_settings
    _configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        db = database or Database.from_settings(settings)
        db.open()
        app.state.db = db
        logger.info("API running on http://localhost:%s", settings.port)
        try:
            yield
        finally:
            db.close()

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Backend API for the insurance services web application. "
            "Includes registration/login, the insurance/law/FAQ catalog, service requests and admin endpoints.\n\n"
            "Admin: send the `X-Role: ADMIN` header on `/api/admin/*` routes."
        ),
        version="1.0.0",
        openapi_tags=openapi_tags,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    app.state.admin_predicate = admin_predicate

    # Added first so it sits inside CORSMiddleware.
    app.add_middleware(UnhandledErrorMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(router)
    return app


app = create_app()
