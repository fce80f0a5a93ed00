"""
Storefront - Centralized Configuration
=======================================
All environment variables and constants are loaded here.
No other module should call os.getenv() directly.
"""

import logging
import os
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("shop.config")


# ==========================================
# 🗄️ Database
# ==========================================
DB_USER = os.getenv("DB_USER")
DB_PASSWORD = os.getenv("DB_PASSWORD")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME")

if os.getenv("DATABASE_URL"):
    DATABASE_URL = os.getenv("DATABASE_URL")
elif all([DB_USER, DB_PASSWORD, DB_HOST, DB_NAME]):
    DATABASE_URL = f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
else:
    DATABASE_URL = "sqlite:///./shop.db"


# ==========================================
# 🔐 Security
# ==========================================
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    logger.warning("SECRET_KEY missing in .env, using an insecure development key")
    SECRET_KEY = "dev-secret-change-me"

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7  # 7 days

COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"
COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "lax")


# ==========================================
# 🛒 Cart
# ==========================================
CART_TOKEN_COOKIE = "cart_token"
CART_TOKEN_HEADER = "X-Cart-Token"
CART_TOKEN_MAX_AGE_DAYS = int(os.getenv("CART_TOKEN_MAX_AGE_DAYS") or "7")
CURRENCY = os.getenv("CURRENCY", "VND")


# ==========================================
# 📦 Orders
# ==========================================
ORDER_CODE_PREFIX = os.getenv("ORDER_CODE_PREFIX", "DH")
ORDER_CODE_LENGTH = int(os.getenv("ORDER_CODE_LENGTH") or "8")


# ==========================================
# 🔧 App
# ==========================================
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
