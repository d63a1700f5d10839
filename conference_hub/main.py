import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
import uvicorn
from conference_hub.config import HOST, LOG_LEVEL, PORT
from conference_hub.db import SessionLocal, init_database
from conference_hub.routers import (
    auth,
    bookings,
    events,
    facilities,
    invitations,
    notifications,
    resources,
    rooms,
    users,
)
from conference_hub.utils.events import EventBus
from conference_hub.utils.notifications import EdgeFunctionClient, NotificationDispatcher

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    "lifespan for initing database"
    init_database()
    yield


app = FastAPI(
    lifespan=lifespan,
    title="Conference Hub",
    description="Meeting room booking with approvals, quotas and invitations, based on FastAPI.",
    version="0.1.0",
    license_info={
        "name": "MIT",
        "url": "https://opensource.org/licenses/MIT",
    },
)

app.state.event_bus = EventBus()
app.state.dispatcher = NotificationDispatcher(SessionLocal, EdgeFunctionClient())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.debug(f"Invalid request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


app.include_router(auth.router)
app.include_router(users.router)
app.include_router(facilities.router)
app.include_router(rooms.router)
app.include_router(resources.router)
app.include_router(bookings.router)
app.include_router(invitations.router)
app.include_router(events.router)
app.include_router(notifications.router)


def run():
    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    run()
