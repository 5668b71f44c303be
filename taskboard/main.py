import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import CORS_ORIGINS, LOG_LEVEL, SCHEDULER_ENABLED
from .database import create_tables
from .errors import TaskboardError
from .routers import auth, mcp_api, tasks
from .scheduler import start_scheduler

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

BRIDGE_PREFIX = "/mcp"


class SessionCORSMiddleware(CORSMiddleware):
    """CORS for the session API only; the token API sets its own headers."""

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and scope["path"].startswith(BRIDGE_PREFIX + "/"):
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


app = FastAPI(
    title="Task Board API",
    description="Kanban task board with activity history and an MCP token bridge",
    version="1.0.0",
)

app.add_middleware(
    SessionCORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(tasks.router, prefix="/api", tags=["tasks"])
app.include_router(mcp_api.router, prefix=BRIDGE_PREFIX, tags=["mcp"])


@app.exception_handler(TaskboardError)
async def taskboard_error_handler(request: Request, exc: TaskboardError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Malformed input is a 400 across the whole API
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.on_event("startup")
async def on_startup():
    create_tables()
    if SCHEDULER_ENABLED:
        app.state.scheduler = start_scheduler()


@app.on_event("shutdown")
async def on_shutdown():
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.cancel()


@app.get("/")
def read_root():
    return {"message": "Task Board API"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}
