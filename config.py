import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from errors import ConfigError

DEFAULT_MONGO_URI = "mongodb://localhost:27017"


class Settings(BaseModel):
    app_env: str = "development"
    mongo_uri: str = DEFAULT_MONGO_URI
    mongo_db: str = "penguin_shop"
    port: int = Field(8081, gt=0)
    uploads_base: str = "http://localhost:4100"
    db_timeout: float = Field(3.0, gt=0, description="Seconds allowed for reads and edits")
    checkout_timeout: float = Field(5.0, gt=0, description="Seconds allowed for checkout")
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @classmethod
    def from_env(cls, env: Optional[dict] = None) -> "Settings":
        """Build settings from environment variables.

        Outside production a ``.env`` file is loaded first (a missing file is
        fine). In production ``MONGO_URI`` must be set explicitly.
        """
        if env is None:
            if os.getenv("APP_ENV") != "production":
                load_dotenv()
            env = os.environ

        app_env = env.get("APP_ENV") or "development"
        mongo_uri = env.get("MONGO_URI")
        if not mongo_uri:
            if app_env == "production":
                raise ConfigError("missing environment variable: MONGO_URI")
            mongo_uri = DEFAULT_MONGO_URI

        try:
            return cls(
                app_env=app_env,
                mongo_uri=mongo_uri,
                mongo_db=env.get("MONGO_DB") or "penguin_shop",
                port=int(env.get("PORT") or 8081),
                uploads_base=env.get("UPLOADS_BASE") or "http://localhost:4100",
                db_timeout=float(env.get("DB_TIMEOUT") or 3),
                checkout_timeout=float(env.get("CHECKOUT_TIMEOUT") or 5),
                log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
            )
        except ValueError as e:
            raise ConfigError(f"invalid configuration: {e}") from e
