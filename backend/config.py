import os
from dotenv import load_dotenv

load_dotenv()

BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))

# SQLite file holding tasks (and agent sessions when SESSION_BACKEND=sqlite)
DATABASE_PATH = os.getenv("TASKFAST_DB", os.path.join(BACKEND_DIR, "taskfast.db"))

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
LLM_MODEL = os.getenv("LLM_MODEL", "claude-sonnet-4-5")

# "memory" keeps dialogue state for the process lifetime, "sqlite" survives restarts
SESSION_BACKEND = os.getenv("SESSION_BACKEND", "memory")
# Idle sessions older than this are dropped; 0 disables expiry
SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", "86400"))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def api_key_configured() -> bool:
    return bool(ANTHROPIC_API_KEY) and ANTHROPIC_API_KEY != "your-api-key-here"
