from tortoise import Tortoise
import os
import logging

from chat_backend import config

logger = logging.getLogger(__name__)

MODELS = ["chat_backend.models"]


def resolve_db_url() -> str:
    db_url = config.DATABASE_URL
    if not db_url and os.getenv("DATABASE_HOST"):
        db_url = f"postgresql://{os.getenv('DATABASE_USER')}:{os.getenv('DATABASE_PASSWORD')}@" \
                 f"{os.getenv('DATABASE_HOST')}:{os.getenv('DATABASE_PORT')}/{os.getenv('DATABASE_NAME')}"
    return db_url or "sqlite://db.sqlite3"


def build_db_config(db_url: str) -> dict:
    """Tortoise config dict for ``db_url``; Postgres URLs are split into asyncpg credentials."""
    # Tortoise expects 'postgres' rather than 'postgresql'
    if db_url.startswith("postgresql://"):
        db_url = "postgres://" + db_url[len("postgresql://"):]
    if not db_url.startswith("postgres://"):
        connection = db_url
    else:
        # sslmode is passed through the credentials instead
        if "?sslmode=" in db_url:
            db_url = db_url.split("?sslmode=")[0]
        connection = {
            "engine": "tortoise.backends.asyncpg",
            "credentials": {
                "database": db_url.split("/")[-1],
                "host": db_url.split("@")[1].split(":")[0],
                "port": db_url.split(":")[-1].split("/")[0],
                "user": db_url.split("//")[1].split(":")[0],
                "password": db_url.split(":")[2].split("@")[0],
                "ssl": config.DATABASE_SSL,
            },
        }
    return {
        "connections": {"default": connection},
        "apps": {
            "models": {
                "models": MODELS,
                "default_connection": "default",
            }
        },
    }


async def init_db(db_url: str | None = None):
    db_url = db_url or resolve_db_url()
    password = os.getenv("DATABASE_PASSWORD")
    sanitized = db_url.replace(password, "****") if password else db_url
    logger.info(f"Connecting to database: {sanitized}")
    try:
        await Tortoise.init(config=build_db_config(db_url))
        await Tortoise.generate_schemas()
    except Exception as e:
        logger.error(f"Database initialization failed: {str(e)}", exc_info=True)
        raise
    logger.info("Database initialization complete")


async def close_db():
    await Tortoise.close_connections()
