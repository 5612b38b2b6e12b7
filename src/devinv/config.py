import os
import sys
from pathlib import Path
from typing import Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DATABASE_FILENAME = "app_database.sqlite"


class Settings(BaseSettings):
    """Application configuration loaded from ``DEVINV_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="DEVINV_")

    app_name: str = Field("DeviceInventory")
    database_path: Optional[Path] = Field(None)
    default_admin_username: str = Field("admin")
    default_admin_password: str = Field("1234")
    default_admin_role: str = Field("Administrator")
    admin_roles: Tuple[str, ...] = Field(("admin", "administrator", "administrador"))
    password_hash_iterations: int = Field(260_000, gt=0)
    export_delimiter: str = Field(";", min_length=1)
    export_replacement: str = Field(",")
    log_level: str = Field("INFO")

    def app_data_dir(self) -> Path:
        """Per-user writable data directory for this application."""
        if sys.platform == "win32":
            base = os.environ.get("APPDATA")
            root = Path(base) if base else Path.home() / "AppData" / "Roaming"
        else:
            base = os.environ.get("XDG_DATA_HOME")
            root = Path(base) if base else Path.home() / ".local" / "share"
        return root / self.app_name

    def resolved_database_path(self) -> Path:
        if self.database_path is not None:
            return Path(self.database_path).expanduser()
        return self.app_data_dir() / DATABASE_FILENAME


settings = Settings()
