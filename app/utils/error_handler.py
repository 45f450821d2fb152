from fastapi import Request
from fastapi.responses import JSONResponse

from app.utils.logger import logger


async def log_exceptions(request: Request, call_next):
    try:
        return await call_next(request)

    except Exception:
        logger.error("=== GLOBAL ERROR ===")
        logger.error(f"Path: {request.method} {request.url.path}")
        logger.exception("Unhandled exception")

        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )
