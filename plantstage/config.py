from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from plantstage.timezone_utils import validate_timezone


class LoggingConfig(BaseModel):
    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    hierarchy_debug: bool = False  # Enable debug logging for store mutations only


class TreeLabels(BaseModel):
    """Wording of the synthetic nodes at the top of the preview tree."""
    grid_name: str = "Grid"
    grid_code: str = "GRID"
    grid_type: str = "Power Grid"
    plant_type: str = "Solar Plant"
    default_plant_name: str = "Plant"
    default_plant_code: str = "PLANT"
    root_suffix: str = "(Plant Root)"  # shown after the plant name in parent pickers


class EditorConfig(BaseModel):
    default_device_status: str = "ONLINE"
    device_statuses: List[str] = Field(
        default_factory=lambda: ["ONLINE", "OFFLINE", "MAINTENANCE", "ERROR"]
    )
    select_all_tags: bool = True  # pre-select every template tag when a device is added

    @model_validator(mode='after')
    def validate_default_status(self):
        """Ensure the default device status is one of the allowed statuses."""
        if self.default_device_status not in self.device_statuses:
            raise ValueError(
                f"default_device_status '{self.default_device_status}' must be one of {self.device_statuses}"
            )
        return self


class PlantDefaults(BaseModel):
    """Fallbacks applied when a saved plant comes back with null fields."""
    status: str = "ACTIVE"
    timezone: str = "Asia/Kolkata"

    @field_validator('timezone')
    @classmethod
    def known_timezone(cls, value: str) -> str:
        return validate_timezone(value)


class StagingConfig(BaseModel):
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    tree: TreeLabels = Field(default_factory=TreeLabels)
    editor: EditorConfig = Field(default_factory=EditorConfig)
    plant: PlantDefaults = Field(default_factory=PlantDefaults)
    catalog_file: Optional[str] = None  # optional YAML list of device templates
