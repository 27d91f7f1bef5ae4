import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass
class Settings:
    """Process configuration, read once from the environment."""

    mongodb_uri: str = "mongodb://localhost:27017"
    database_name: str = "student_crud"
    mongodb_timeout_ms: int = 5000
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        return cls(
            mongodb_uri=os.getenv("MONGODB_URI") or os.getenv("DATABASE_URL", cls.mongodb_uri),
            database_name=os.getenv("DATABASE_NAME", cls.database_name),
            mongodb_timeout_ms=int(os.getenv("MONGODB_TIMEOUT_MS", cls.mongodb_timeout_ms)),
            host=os.getenv("HOST", cls.host),
            port=int(os.getenv("PORT", cls.port)),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
        )
