"""Runtime settings read from the environment (and a local .env file)."""
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_SSL = os.getenv("DATABASE_SSL", "true").lower() in ("1", "true", "yes")

JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
TOKEN_EXPIRY_DAYS = int(os.getenv("TOKEN_EXPIRY_DAYS", "30"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "10"))

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "./uploads")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

DEFAULT_PICTURE = os.getenv(
    "DEFAULT_PICTURE",
    "https://encrypted-tbn0.gstatic.com/images?q=tbn:ANd9GcSJdGouD75_lVEncH-Hu1naif3TDh6VKv3iwZqz2t6mOA7YkG1j&s",
)
