import logging
import sys
from contextlib import asynccontextmanager
from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from medx.core.config import settings
from medx.core.firebase import init_firebase, is_firebase_ready
from medx.core.database import connect_db, close_db, check_db_health
from medx.routes import notifications
from medx.routes import settings as settings_router
from medx.services.container import init_services, shutdown_services


#------This Function handles the Logging Setup---------
def setup_logging():
    log_level = logging.INFO if settings.environment == "production" else logging.DEBUG

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


setup_logging()
logger = logging.getLogger(__name__)


#------This Function handles the lifespan events---------
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.environment} environment")

    try:
        init_firebase()
        logger.info("Firebase initialized")
    except Exception as e:
        logger.warning(f"Firebase unavailable, push notifications fall back to in-app toasts: {str(e)}")

    try:
        await connect_db()
    except Exception as e:
        logger.error(f"Failed to connect to database: {str(e)}")
        raise

    init_services()

    yield

    logger.info("Shutting down application...")
    await shutdown_services()
    await close_db()


app = FastAPI(
    title="MedX Reminders API",
    description="Medication reminder scheduling and notification delivery",
    version="1.0.0",
    lifespan=lifespan,
)


#------This Function handles validation errors---------
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error for {request.method} {request.url}: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "errors": exc.errors(),
        },
    )


#------This Function handles value errors---------
@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.warning(f"Value error for {request.method} {request.url}: {str(exc)}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc)},
    )


#------This Function handles general exceptions---------
@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error for {request.method} {request.url}: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error" if settings.environment == "production" else str(exc)},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(notifications.router)
app.include_router(settings_router.router)


#------This Function returns health status---------
@app.get("/health")
async def health():
    return {"status": "alive", "service": "medx-reminders", "environment": settings.environment}


#------This Function returns detailed health status---------
@app.get("/health/detailed")
async def health_detailed():
    return {
        "status": "alive",
        "service": "medx-reminders",
        "environment": settings.environment,
        "database": await check_db_health(),
        "firebase": {"status": "healthy" if is_firebase_ready() else "uninitialized"},
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "medx.main:app",
        host=settings.server_host,
        port=settings.port,
        reload=settings.environment != "production",
    )
