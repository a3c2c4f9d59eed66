import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from jose import JWTError

from .api import audit_logs, auth, dashboard, elections, live, participants, system, votes
from .auth.jwt import decode_token
from .config import Base, SessionLocal, engine, settings
from .core.errors import register_exception_handlers
from .core.logging import configure_logging
from .core.request_context import REQUEST_ID_HEADER, assign_request_id
from .core.security import SecurityHeadersMiddleware, log_security_warnings
from .services.audit import audit_log
from .services.live import live_results
from .services.results import register_results_subscriber

configure_logging(settings.log_level, json=settings.log_json)

logger = logging.getLogger(__name__)

app = FastAPI(title="ballotbox")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.enable_hsts)

register_exception_handlers(app)


@app.on_event("startup")
def startup() -> None:
    # In dev we make sure tables exist. Alembic migrations should be used for real schema evolution.
    Base.metadata.create_all(bind=engine)
    register_results_subscriber()
    log_security_warnings(settings.jwt_secret, settings.database_url)


app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(participants.router)
app.include_router(elections.router, prefix="/elections", tags=["elections"])
app.include_router(votes.router)
app.include_router(live.router)
app.include_router(dashboard.router)
app.include_router(audit_logs.router)
app.include_router(system.router, prefix="/system", tags=["system"])


def _actor_from_request(request: Request) -> Optional[int]:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.lower().startswith("bearer "):
        return None
    token = auth_header.split(" ", 1)[1]
    try:
        payload = decode_token(token)
        return int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        return None


@app.middleware("http")
async def audit_trail(request: Request, call_next):
    response = await call_next(request)
    if request.method not in {"POST", "PUT", "PATCH", "DELETE"}:
        return response
    with SessionLocal() as session:
        audit_log(
            db_session=session,
            actor_participant_id=_actor_from_request(request),
            action=f"{request.method} {request.url.path}",
            target_entity_type="HTTP",
            target_entity_id=request.url.path,
            after={"status": response.status_code},
        )
    return response


@app.middleware("http")
async def request_id(request: Request, call_next):
    request_id_value = assign_request_id(request)
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id_value
    return response


@app.on_event("startup")
async def configure_live_results() -> None:
    live_results.configure_loop(asyncio.get_running_loop())


@app.on_event("shutdown")
async def shutdown_live_results() -> None:
    await live_results.shutdown()
