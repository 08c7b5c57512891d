import logging
from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gatehouse.api.routes import api_router
from gatehouse.core.config import get_settings
from gatehouse.core.exceptions import register_exception_handlers
from gatehouse.core.logging import setup_logging
from gatehouse.db.base import Base
from gatehouse.db.session import engine, session_scope
from gatehouse.middleware.request_context import RequestContextMiddleware
from gatehouse.services.unit_service import seed_default_units
from gatehouse.socket.server import sio

settings = get_settings()
setup_logging(logging.DEBUG if settings.DEBUG else logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    if settings.ENVIRONMENT.lower() == "development":
        with session_scope() as db:
            seed_default_units(db)
    logger.info(
        "visitor data at %s, transport=%s; pending correlations start empty",
        settings.visitor_data_path,
        settings.NOTIFICATION_TRANSPORT,
    )
    yield


fastapi_app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG, lifespan=lifespan)
fastapi_app.include_router(api_router, prefix=settings.API_V1_PREFIX)
fastapi_app.add_middleware(RequestContextMiddleware)
fastapi_app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(fastapi_app)


app = socketio.ASGIApp(
    sio,
    other_asgi_app=fastapi_app,
    socketio_path=settings.SOCKET_PATH.lstrip("/"),
)
