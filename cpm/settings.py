"""
Configuration settings for the CPM scheduler.
Load configuration from environment variables or a .env file.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
env_file = Path(__file__).parent.parent / '.env'
if env_file.exists():
    load_dotenv(env_file)


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


class Settings:
    """Application settings loaded from environment variables."""

    PROJECT_ROOT = Path(__file__).parent.parent

    # Logging
    LOG_LEVEL = os.getenv('CPM_LOG_LEVEL', 'INFO').upper()

    # Decimal places kept on total and free float
    PRECISION = _int_env('CPM_PRECISION', 9)

    @classmethod
    def validate(cls) -> list[str]:
        """
        Validate the configured values.
        Returns list of problems, empty when everything is usable.
        """
        problems = []
        if cls.LOG_LEVEL not in {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}:
            problems.append(f"CPM_LOG_LEVEL has unknown level '{cls.LOG_LEVEL}'")
        if cls.PRECISION < 0:
            problems.append('CPM_PRECISION must be >= 0')
        return problems


settings = Settings()

_problems = Settings.validate()
if _problems:
    raise ValueError(f"Invalid scheduler configuration: {'; '.join(_problems)}")
