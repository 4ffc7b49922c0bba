import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from crm.core.config import settings
from crm.core.database import Base, engine
from crm.core.errors import register_error_handlers
from crm.models.user import User  # noqa: F401
from crm.models.group import Group  # noqa: F401
from crm.models.member import Member  # noqa: F401
from crm.models.membership import GroupMember  # noqa: F401
from crm.models.meeting import Meeting  # noqa: F401
from crm.models.attendance import Attendance  # noqa: F401
from crm.models.member_note import MemberNote  # noqa: F401

from crm.api.routes.auth import router as auth_router
from crm.api.routes.groups import router as groups_router
from crm.api.routes.meetings import router as meetings_router
from crm.api.routes.members import router as members_router
from crm.api.routes.admin_users import router as admin_users_router
from crm.api.routes.settings import router as settings_router

from crm.realtime.sse import router as sse_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Networking CRM API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    allow_credentials=False,
)

register_error_handlers(app, hide_internal_errors=settings.is_production)

app.include_router(auth_router)
app.include_router(groups_router)
app.include_router(meetings_router)
app.include_router(members_router)
app.include_router(admin_users_router)
app.include_router(settings_router)

app.include_router(sse_router)

logger.info("Networking CRM API ready (%s)", settings.ENVIRONMENT)


@app.get("/")
def root():
    return {"status": "ok", "message": "Networking CRM API"}


@app.get("/health")
def health():
    return {"ok": True}
