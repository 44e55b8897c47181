from typing import Optional

from pydantic import BaseModel, ValidationError

from config import YamlConfig


class SettingsSchema(BaseModel):
    db_path: str = "workout.db"
    backup_path: Optional[str] = None
    download_dir: str = "."
    backup_on_finish: bool = True
    pretty_backup: bool = True
    log_level: str = "INFO"


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))


def load_settings(yaml_path: str = "settings.yaml") -> SettingsSchema:
    """Read ``yaml_path`` and return validated settings with defaults filled in."""
    data = YamlConfig(yaml_path).load()
    validate_settings(data)
    return SettingsSchema(**data)
