"""RAXNET: social-media task marketplace backend."""

from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from raxnet import __version__
from raxnet.api.router import api_router
from raxnet.config import settings
from raxnet.content import render_response
from raxnet.database import close_db, init_db
from raxnet.rate_limit import limiter

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("raxnet")


def _database_url(value: str) -> str:
    """A bare path means a SQLite file; anything with a scheme is used as given."""
    if "://" in value:
        return value
    path = Path(value)
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite+aiosqlite:///{path}"


@asynccontextmanager
async def lifespan(app: FastAPI):
    db_url = _database_url(settings.database_url)
    await init_db(db_url)
    safe_url = re.sub(r"://[^:]+:[^@]+@", "://***:***@", db_url)
    logger.info("Database connected: %s", safe_url)

    yield

    await close_db()
    logger.info("Database closed")


app = FastAPI(
    title="RAXNET",
    description="Social-media task marketplace: post interaction tasks, earn coins doing them",
    version=__version__,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(api_router)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    body = {"error": exc.detail}
    code = getattr(exc, "code", None)
    if code:
        body["code"] = code
    return render_response(request, body, status_code=exc.status_code, headers=exc.headers)


@app.get("/health")
async def health():
    return {"status": "ok"}


def main():
    import uvicorn

    uvicorn.run(
        "raxnet.main:app",
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    main()
