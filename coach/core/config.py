import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./coach.db")

# ✅ Identity provider (bearer token verification)
AUTH_JWT_SECRET = os.getenv("AUTH_JWT_SECRET")
AUTH_JWT_ALGORITHM = os.getenv("AUTH_JWT_ALGORITHM", "HS256")
AUTH_JWT_PUBLIC_KEY = os.getenv("AUTH_JWT_PUBLIC_KEY")
AUTH_JWT_PUBLIC_KEY_ALGORITHM = os.getenv("AUTH_JWT_PUBLIC_KEY_ALGORITHM", "RS256")
AUTH_JWT_AUDIENCE = os.getenv("AUTH_JWT_AUDIENCE")
AUTH_JWT_ISSUER = os.getenv("AUTH_JWT_ISSUER")

# ✅ Model APIs (server and client each hold their own key)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")

QUESTION_MODEL = os.getenv("QUESTION_MODEL", "gpt-4o-mini")
EVALUATION_MODEL = os.getenv("EVALUATION_MODEL", "gpt-4o-mini")
REVIEW_MODEL = os.getenv("REVIEW_MODEL", "gpt-4o")
LIVE_MODEL = os.getenv("LIVE_MODEL", "gemini-2.5-flash-native-audio-preview-09-2025")

# ✅ HTTP surface
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = os.getenv("LOG_DIR", "logs")

# ✅ Client
API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8080/api")
GUEST_STORAGE_PATH = os.getenv(
    "GUEST_STORAGE_PATH",
    os.path.join(os.path.expanduser("~"), ".coach", "local_storage.json"),
)
AUTH_TIMEOUT_SECONDS = 8.0
CLIENT_LOG_DIR = os.getenv("CLIENT_LOG_DIR", os.path.join(os.path.expanduser("~"), ".coach", "logs"))
