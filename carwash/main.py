import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, status
from fastapi.responses import JSONResponse
from loguru import logger
from tortoise import Tortoise, connections

from carwash import settings
from carwash.cache import close_redis
from carwash.errors import register_exception_handlers
from carwash.log import log_requests, setup_logging
from carwash.rate_limit import general_limiter, run_sweeper
from carwash.routers import (
    admin,
    bookings,
    reviews,
    services,
    transactions,
    users,
    vehicles,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await Tortoise.init(config=settings.TORTOISE_ORM)
    if settings.GENERATE_SCHEMAS:
        await Tortoise.generate_schemas(safe=True)
    sweeper = asyncio.create_task(run_sweeper())
    logger.info(
        "Car wash API started ({}) on port {}", settings.ENVIRONMENT, settings.PORT
    )

    yield

    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    await close_redis()
    await Tortoise.close_connections()
    logger.info("Car wash API stopped")


def create_app(lifespan=lifespan) -> FastAPI:
    app = FastAPI(title="Car Wash Booking API", lifespan=lifespan)
    app.middleware("http")(log_requests)
    register_exception_handlers(app)

    limited = [Depends(general_limiter)]
    for module in (users, services, bookings, vehicles, transactions, reviews):
        app.include_router(module.router, prefix=settings.API_PREFIX, dependencies=limited)
    app.include_router(admin.router, prefix=settings.API_PREFIX)

    @app.get("/health", tags=["health"])
    async def health():
        try:
            await connections.get("default").execute_query("SELECT 1")
        except Exception:
            logger.opt(exception=True).error("Health check: database unreachable")
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"success": False, "status": "error", "database": "disconnected"},
            )
        return {"success": True, "status": "ok", "database": "connected"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "carwash.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=not settings.IS_PRODUCTION,
        proxy_headers=True,
        forwarded_allow_ips=settings.FORWARDED_ALLOW_IPS,
    )
