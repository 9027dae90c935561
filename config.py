import os
import logging

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

JWT_SECRET = os.getenv("JWT_SECRET", "dev_secret_change_me")
JWT_ALG = "HS256"
TOKEN_EXPIRE_MIN = int(os.getenv("TOKEN_EXPIRE_MIN", 60 * 24 * 30))  # 30 days

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

CLOUDINARY_URL = os.getenv("CLOUDINARY_URL")
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")

ENVIRONMENT = os.getenv("ENVIRONMENT", "production")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "https://front-end-lake-one.vercel.app",
    "https://delivernow-admin-dashboard.onrender.com",
]
ALLOWED_ORIGINS = (
    [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o.strip()]
    or DEFAULT_ALLOWED_ORIGINS
)
# Any Vercel or Render deployment of the dashboard
ALLOWED_ORIGIN_REGEX = r"^https://.*\.(vercel\.app|onrender\.com)$"

DEFAULT_COUNTRY = "South Africa"
MIN_PASSWORD_LENGTH = 6
VENDOR_PLACEHOLDER_PASSWORD = os.getenv("VENDOR_PLACEHOLDER_PASSWORD", "TempPassword123!")

# Johannesburg, used when a restaurant is created without coordinates
DEFAULT_LATITUDE = -26.2041
DEFAULT_LONGITUDE = 28.0473


def is_development() -> bool:
    return ENVIRONMENT == "development"


def cloudinary_configured() -> bool:
    return bool(CLOUDINARY_URL or (CLOUDINARY_CLOUD_NAME and CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET))


def warn_insecure_defaults() -> None:
    if JWT_SECRET == "dev_secret_change_me":
        logger.warning("JWT_SECRET is not set; tokens are signed with the development secret")
    if not cloudinary_configured():
        logger.warning("Cloudinary credentials missing; image uploads will fail")
