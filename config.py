import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./petpalace.db")

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALG = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

SEED_ON_STARTUP = os.getenv("SEED_ON_STARTUP", "1") == "1"
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@petpalace.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

PORT = int(os.getenv("PORT", "9090"))
