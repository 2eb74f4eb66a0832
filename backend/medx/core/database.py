import logging
import asyncio
from pymongo import AsyncMongoClient
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from beanie import init_beanie
from medx.core.config import settings

logger = logging.getLogger(__name__)

_client = None


MAX_RETRIES = 3
RETRY_DELAY = 2
CONNECTION_TIMEOUT = 10
MAX_POOL_SIZE = 50
MIN_POOL_SIZE = 10


#------This Function lists the medx document models---------
def document_models() -> list:
    from medx.models.profile import PatientProfile
    from medx.models.notification import NotificationDocument

    return [PatientProfile, NotificationDocument]


#------This Function handles the database connection---------
async def connect_db():
    global _client

    retry_count = 0
    last_error = None

    while retry_count < MAX_RETRIES:
        try:
            logger.info(f"Attempting database connection (attempt {retry_count + 1}/{MAX_RETRIES})...")

            _client = AsyncMongoClient(
                settings.mongodb_uri,
                maxPoolSize=MAX_POOL_SIZE,
                minPoolSize=MIN_POOL_SIZE,
                connectTimeoutMS=CONNECTION_TIMEOUT * 1000,
                serverSelectionTimeoutMS=CONNECTION_TIMEOUT * 1000,
                retryWrites=True,
            )


            await _client.admin.command('ping')
            logger.info("Database connection established successfully")
            break

        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            last_error = e
            retry_count += 1
            logger.warning(f"Database connection attempt {retry_count} failed: {str(e)}")

            if retry_count < MAX_RETRIES:
                await asyncio.sleep(RETRY_DELAY * retry_count)
            else:
                logger.error(f"Failed to connect to database after {MAX_RETRIES} attempts")
                raise RuntimeError(f"Failed to connect to database: {str(last_error)}")
        except Exception as e:
            logger.error(f"Unexpected error during database connection: {str(e)}")
            raise


    await init_beanie(database=_client[settings.db_name], document_models=document_models())

    logger.info(
        f"Database {settings.db_name} initialized with "
        f"{', '.join(model.__name__ for model in document_models())}"
    )


#------This Function closes the database connection---------
async def close_db():
    global _client
    if _client:
        try:
            await _client.close()
            logger.info("Database connection closed")
        except Exception as e:
            logger.error(f"Error closing database connection: {str(e)}")


#------This Function checks the database health status---------
async def check_db_health() -> dict:
    try:
        if _client is None:
            return {"status": "unhealthy", "error": "Database not initialized"}

        await _client.admin.command('ping')
        return {"status": "healthy", "database": settings.db_name}
    except Exception as e:
        return {"status": "unhealthy", "error": str(e)}
