"""
Plant details captured before the device hierarchy is staged.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from plantstage.hierarchy.errors import StagingError
from plantstage.timezone_utils import to_utc_iso, validate_timezone

log = logging.getLogger(__name__)

PLANT_STATUSES = ("ACTIVE", "INACTIVE", "MAINTENANCE", "OFFLINE")

# Form field -> label shown when the field is missing
REQUIRED_FORM_FIELDS = (
    ("name", "Plant Name"),
    ("plantId", "Plant ID"),
    ("mqttBaseTopic", "MQTT Base Topic"),
    ("capacity", "Capacity"),
    ("address", "Address"),
    ("lat", "Latitude"),
    ("lng", "Longitude"),
)


class IncompletePlantDetails(StagingError):
    """Raised when required plant fields are missing."""

    def __init__(self, missing: List[str]):
        self.missing = missing
        super().__init__(f"Please fill in the following required fields: {', '.join(missing)}")


class Location(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    lat: float = Field(ge=-90, le=90, validation_alias=AliasChoices("lat", "latitude"))
    lng: float = Field(ge=-180, le=180, validation_alias=AliasChoices("lng", "longitude"))
    address: str = ""


class PlantDetails(BaseModel):
    """Plant fields sent alongside the staged devices."""
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    name: str = Field(min_length=1)
    plant_id: str = Field(alias="plantId", min_length=1)
    mqtt_base_topic: str = Field(alias="mqttBaseTopic", min_length=1)
    capacity: float = Field(gt=0, description="Plant capacity in kW")
    status: str = "ACTIVE"
    timezone: str = "Asia/Kolkata"
    installation_date: Optional[date] = Field(default=None, alias="installationDate")
    location: Optional[Location] = None

    @field_validator("plant_id")
    @classmethod
    def upper_plant_id(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("status")
    @classmethod
    def known_status(cls, value: str) -> str:
        if value not in PLANT_STATUSES:
            raise ValueError(f"status must be one of {list(PLANT_STATUSES)}")
        return value

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, value: str) -> str:
        return validate_timezone(value)

    @field_validator("installation_date", mode="before")
    @classmethod
    def date_part(cls, value: Any) -> Any:
        # The API returns full timestamps; only the calendar date is edited.
        if value in ("", None):
            return None
        if isinstance(value, str) and "T" in value:
            return value.split("T")[0]
        return value

    @classmethod
    def from_form(cls, data: Dict[str, Any], **defaults) -> "PlantDetails":
        """
        Build from flat form data (location fields at the top level).

        Raises:
            IncompletePlantDetails: a required field is empty
            pydantic.ValidationError: a field has an invalid value
        """
        missing = missing_plant_fields(data)
        if missing:
            raise IncompletePlantDetails(missing)
        record = {key: value for key, value in data.items() if value not in ("", None)}
        record["location"] = {
            "lat": data["lat"],
            "lng": data["lng"],
            "address": data["address"],
        }
        for key, value in defaults.items():
            record.setdefault(key, value)
        return cls.model_validate(record)

    @classmethod
    def from_record(cls, record: Dict[str, Any], **defaults) -> "PlantDetails":
        """
        Build from a saved plant as returned by the plant-detail API.

        Null fields fall back to ``defaults`` and then to the model defaults
        instead of failing the whole load. A location missing either
        coordinate is dropped.

        Raises:
            pydantic.ValidationError: a field without a fallback is null or invalid
        """
        data = {key: value for key, value in record.items() if value is not None}
        for key, value in defaults.items():
            if value is not None:
                data.setdefault(key, value)

        location = data.get("location")
        if isinstance(location, dict):
            location = {key: value for key, value in location.items() if value not in ("", None)}
            has_lat = "lat" in location or "latitude" in location
            has_lng = "lng" in location or "longitude" in location
            if has_lat and has_lng:
                data["location"] = location
            else:
                log.warning(f"Plant {data.get('plantId')} has an incomplete location; loading without it")
                data.pop("location")
        return cls.model_validate(data)

    def to_wire(self) -> Dict[str, Any]:
        """camelCase plant body without devices."""
        payload: Dict[str, Any] = {
            "name": self.name,
            "plantId": self.plant_id,
            "mqttBaseTopic": self.mqtt_base_topic,
            "capacity": self.capacity,
            "status": self.status,
            "timezone": self.timezone,
        }
        if self.installation_date:
            payload["installationDate"] = to_utc_iso(self.installation_date)
        if self.location is not None:
            payload["location"] = {
                "lat": self.location.lat,
                "lng": self.location.lng,
                "address": self.location.address,
            }
        return payload


def missing_plant_fields(data: Dict[str, Any]) -> List[str]:
    """Labels of required form fields that are absent or blank."""
    missing = []
    for key, label in REQUIRED_FORM_FIELDS:
        value = data.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(label)
    return missing
