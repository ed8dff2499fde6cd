from fastapi import FastAPI, Request
from contextlib import asynccontextmanager
import asyncio
import tempfile
import time
import uuid

import uvicorn

from logging_config import setup_logging
from config import config

# Initialize logging; an unwritable LOG_DIR must not keep the server down
try:
    logger = setup_logging(log_dir=str(config.LOG_DIR), log_level=config.LOG_LEVEL)
except OSError as e:
    fallback_dir = tempfile.mkdtemp(prefix="datagraph-logs-")
    logger = setup_logging(log_dir=fallback_dir, log_level=config.LOG_LEVEL)
    logger.warning(
        f"Cannot write logs to {config.LOG_DIR}, using {fallback_dir}",
        extra={"original_error": str(e)}
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run Telegram polling next to the HTTP server for the app's lifetime."""
    bot_task = None
    if config.TELEGRAM_BOT_TOKEN:
        logger.info("Starting Telegram bot")
        bot_task = asyncio.create_task(telegram.run_bot(config.TELEGRAM_BOT_TOKEN))
    else:
        logger.warning("TELEGRAM_BOT_TOKEN is not set - running the HTTP server only")

    yield

    if bot_task is not None:
        bot_task.cancel()
        try:
            await bot_task
        except asyncio.CancelledError:
            logger.info("Telegram bot task stopped")
        except Exception as e:
            logger.error(
                f"Telegram bot task failed: {e}",
                exc_info=True,
                extra={"error_type": type(e).__name__}
            )


app = FastAPI(title="Data Graph Bot", lifespan=lifespan)

# Route modules import services that log through the logger configured above
from api.routes import charts, system, telegram  # noqa: E402


def route_prefix(path: str) -> str:
    """First path segment only; the rest of a dashboard path is the secret token."""
    return "/" + path.strip("/").split("/", 1)[0]


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log each request with a request id and its duration."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    started = time.perf_counter()

    endpoint = route_prefix(request.url.path)
    context = {
        "request_id": request_id,
        "endpoint": endpoint,
        "method": request.method,
        "client_ip": request.client.host if request.client else "unknown",
    }
    logger.info(
        f"Incoming request: {request.method} {endpoint}",
        extra={**context, "user_agent": request.headers.get("user-agent", "unknown")}
    )

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            f"Request failed: {request.method} {endpoint} - {e}",
            exc_info=True,
            extra={
                **context,
                "duration_ms": int((time.perf_counter() - started) * 1000),
                "error_type": type(e).__name__,
            }
        )
        raise

    logger.info(
        f"Request completed: {request.method} {endpoint} - {response.status_code}",
        extra={
            **context,
            "status_code": response.status_code,
            "duration_ms": int((time.perf_counter() - started) * 1000),
        }
    )
    return response


app.include_router(charts.router)
app.include_router(system.router)


if __name__ == "__main__":
    uvicorn.run(app, host=config.HOST, port=config.PORT)
