import logging
import os
from dataclasses import dataclass
from datetime import timedelta

# Circulation rules
LOAN_LIMIT = 3
LOAN_PERIOD = timedelta(days=14)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./elibrary.db"
    log_level: str = "INFO"
    borrow_attempts: int = 3
    db_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("ELIB_DB", cls.database_url),
            log_level=os.getenv("ELIB_LOG", cls.log_level).upper(),
            borrow_attempts=max(1, int(os.getenv("ELIB_BORROW_ATTEMPTS", cls.borrow_attempts))),
            db_timeout=float(os.getenv("ELIB_DB_TIMEOUT", cls.db_timeout)),
        )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    logging.getLogger("elibrary").setLevel(settings.log_level)
