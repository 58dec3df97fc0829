# edugrade/core/config.py
import os
from pathlib import Path

from dotenv import load_dotenv

# .env 파일 로드
load_dotenv()

# Values that count as "never configured" for the service credential
UNSET_CREDENTIALS = ("", "undefined", "null")


class Settings:
    AZURE_OPENAI_ENDPOINT: str = os.getenv("AZURE_OPENAI_ENDPOINT", "")
    AZURE_OPENAI_API_KEY: str = os.getenv("AZURE_OPENAI_API_KEY", "")
    AZURE_OPENAI_DEPLOYMENT: str = os.getenv("AZURE_OPENAI_DEPLOYMENT", "")
    AZURE_OPENAI_API_VERSION: str = os.getenv("AZURE_OPENAI_API_VERSION", "2025-04-01-preview")
    API_TIMEOUT_S: float = float(os.getenv("API_TIMEOUT_S", "120.0"))

    MAX_FILE_SIZE_MB: float = float(os.getenv("MAX_FILE_SIZE_MB", "3"))
    IMAGE_MAX_WIDTH: int = int(os.getenv("IMAGE_MAX_WIDTH", "2000"))
    IMAGE_JPEG_QUALITY: int = int(os.getenv("IMAGE_JPEG_QUALITY", "85"))

    HISTORY_PATH: str = os.getenv(
        "HISTORY_PATH", str(Path.home() / ".edugrade" / "history.json")
    )
    HISTORY_KEY: str = os.getenv("HISTORY_KEY", "edugrade_history")

    # Minimum percentage that counts as a pass
    PASS_MARK_PERCENT: float = float(os.getenv("PASS_MARK_PERCENT", "40"))

    PROMPT_VERSION: str = os.getenv("PROMPT_VERSION", "v1.0.0")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def __init__(self, **overrides):
        for key, value in overrides.items():
            if not hasattr(type(self), key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.MAX_FILE_SIZE_MB * 1024 * 1024)

    @property
    def has_credential(self) -> bool:
        key = (self.AZURE_OPENAI_API_KEY or "").strip()
        return key.lower() not in UNSET_CREDENTIALS


settings = Settings()
