# linkhub/main.py
import os

import structlog
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from linkhub.dependencies.linking import get_registry
from linkhub.errors import LinkError
from linkhub.infrastructure.database import init_db
from linkhub.middleware.logging import RequestIdMiddleware
from linkhub.providers.registry import ProviderRegistry
from linkhub.routers.platforms_router import router as platforms_router
from linkhub.routers.platforms_router import status_for

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    context_class=dict,
    cache_logger_on_first_use=True,
)
logger = structlog.get_logger()

app = FastAPI(title="LinkHub")
app.add_middleware(RequestIdMiddleware)
app.include_router(platforms_router)


@app.exception_handler(LinkError)
async def link_error_handler(request: Request, exc: LinkError):
    code = status_for(exc)
    if code >= 500:
        logger.error("link_error", error=exc.kind, message=exc.detail)
    return JSONResponse({"detail": {"error": exc.kind, "message": exc.detail}}, status_code=code)


@app.get("/health")
async def health(registry: ProviderRegistry = Depends(get_registry)):
    return {"status": "ok", "platforms": registry.configured()}


@app.on_event("startup")
async def on_startup():
    await init_db()
    logger.info("app_startup", platforms=get_registry().configured())


if __name__ == "__main__":
    uvicorn.run("linkhub.main:app", host="0.0.0.0", port=int(os.getenv("PORT", 8000)), reload=True)
