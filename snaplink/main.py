from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn
import logging
import time

from snaplink.database import engine, Base
from snaplink.routers import analytics, links
from snaplink.config import settings
from snaplink.errors import LinkError
from snaplink.geo import build_geolocator

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger("snaplink")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управляет жизненным циклом приложения"""
    logger.info("Запуск приложения...")

    app.state.geolocator = build_geolocator(settings.GEOIP_PROVIDER)
    logger.info("Провайдер геолокации: %s", type(app.state.geolocator).__name__)

    yield

    logger.info("Завершение работы приложения...")
    app.state.geolocator.close()


Base.metadata.create_all(bind=engine)

app = FastAPI(
    title=settings.APP_NAME,
    description="API для сервиса сокращения ссылок с аналитикой переходов",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(analytics.router)
app.include_router(links.router)


@app.exception_handler(LinkError)
async def link_error_handler(request: Request, exc: LinkError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.code.value}
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time

    if request.url.path.startswith("/links") or request.url.path.startswith("/analytics"):
        logger.info("%s %s - %s - %.4fs", request.method, request.url.path, response.status_code, process_time)

    return response


@app.get("/", tags=["root"])
async def root():
    return {
        "message": "SnapLink API",
        "docs_url": "/docs",
        "version": "1.0.0"
    }


if __name__ == "__main__":
    uvicorn.run("snaplink.main:app", host="0.0.0.0", port=8000, reload=True)
