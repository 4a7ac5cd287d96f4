import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    # === Server ===

    class SERVER:
        HOST = os.getenv("RELAY_HOST", "0.0.0.0")
        PORT = int(os.getenv("RELAY_PORT", "8080"))

    # === Captioning Collaborator ===

    class CAPTION_SERVICE:
        URL = os.getenv("CAPTION_SERVICE_URL", "http://localhost:8000/caption")
        TIMEOUT = float(os.getenv("CAPTION_SERVICE_TIMEOUT", "30"))

    # === Limits ===

    class LIMITS:
        MAX_REQUEST_BYTES = int(os.getenv("MAX_REQUEST_BYTES", str(10 * 1024 * 1024)))

    # === CORS ===

    class CORS:
        ALLOWED_ORIGIN = os.getenv("CORS_ALLOWED_ORIGIN", "http://localhost:3000")
        ALLOW_HEADERS = (
            "Content-Type, Content-Length, Accept-Encoding, X-CSRF-Token, "
            "Authorization, accept, origin, Cache-Control, X-Requested-With"
        )
        ALLOW_METHODS = "POST, OPTIONS, GET, PUT, DELETE"

    # === Logging ===

    class LOGGING:
        DIR = os.getenv("LOG_DIR", "logs")
        KEEP_DAYS = int(os.getenv("LOG_KEEP_DAYS", "7"))
