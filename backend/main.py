import logging
import math
import os
from typing import Optional

from fastapi import Cookie, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
import psycopg2
from pydantic import BaseModel
from dotenv import load_dotenv
from jose import JWTError, jwt

try:
    from backend import app_context
    from backend.app.routes.billing import router as billing_router
    from backend.app.routes.resources import router as resources_router
    from backend.app.services.billing import get_plan_catalog
except ModuleNotFoundError as exc:
    if exc.name != "backend":
        raise
    import app_context  # type: ignore[no-redef]
    from app.routes.billing import router as billing_router  # type: ignore[no-redef]
    from app.routes.resources import router as resources_router  # type: ignore[no-redef]
    from app.services.billing import get_plan_catalog  # type: ignore[no-redef]


load_dotenv()

def _parse_connect_timeout(raw_value: str) -> int:
    try:
        timeout = float(raw_value)
    except ValueError as exc:
        raise ValueError("DB_CONNECT_TIMEOUT must be a number") from exc
    if timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    return int(math.ceil(timeout))

DB_CFG = dict(
    host=os.getenv("DB_HOST", "127.0.0.1"),
    port=int(os.getenv("DB_PORT", "5432")),
    dbname=os.getenv("DB_NAME", "storefront_db"),
    user=os.getenv("DB_USER", "storefront"),
    password=os.getenv("DB_PASSWORD", "storefront"),
    connect_timeout=_parse_connect_timeout(os.getenv("DB_CONNECT_TIMEOUT", "5")),
)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-change-me")
JWT_ALGORITHM = "HS256"
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if origin.strip()]

logger = logging.getLogger("storefront")


def get_conn():
    return psycopg2.connect(**DB_CFG)


class CurrentTenant(BaseModel):
    id: str
    email: Optional[str] = None


def resolve_tenant_from_session_token(session_token: str) -> Optional[CurrentTenant]:
    try:
        payload = jwt.decode(session_token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None
    subject = payload.get("sub")
    if not subject:
        return None
    return CurrentTenant(id=str(subject), email=payload.get("email"))


def get_current_user(session_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME)) -> CurrentTenant:
    if not session_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    tenant = resolve_tenant_from_session_token(session_token)
    if tenant is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return tenant


app_context.register_connection_factory(get_conn)

app = FastAPI(title="Storefront Billing API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(billing_router)
app.include_router(resources_router)


@app.on_event("startup")
def seed_plans() -> None:
    try:
        get_plan_catalog().ensure_seeded()
    except psycopg2.Error:
        logger.exception("Plan seeding failed; it will be retried on the first plan lookup")


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
