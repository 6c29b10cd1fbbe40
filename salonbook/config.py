"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import WEEKDAYS, DaySchedule, ScheduleConfig, Service


class DaySettings(BaseModel):
    """Opening hours of one weekday."""
    open: bool = True
    open_time: str = "08:00"
    close_time: str = "18:00"
    break_start: Optional[str] = None
    break_end: Optional[str] = None

    @model_validator(mode="after")
    def validate_hours(self) -> "DaySettings":
        """Reuse the domain invariants (format, ordering, break inside hours)."""
        self.to_day_schedule()
        return self

    def to_day_schedule(self) -> DaySchedule:
        return DaySchedule(
            open=self.open,
            open_time=self.open_time,
            close_time=self.close_time,
            break_start=self.break_start,
            break_end=self.break_end,
        )


class ScheduleSettings(BaseModel):
    """Weekly schedule; weekdays left out keep their default hours."""
    slot_granularity_minutes: int = 30
    days: Dict[str, DaySettings] = Field(default_factory=dict)

    @field_validator("slot_granularity_minutes")
    @classmethod
    def validate_granularity(cls, value: int) -> int:
        """Ensure the slot length is positive."""
        if value <= 0:
            raise ValueError("slot_granularity_minutes must be greater than zero")
        return value

    @field_validator("days")
    @classmethod
    def validate_day_names(cls, value: Dict[str, DaySettings]) -> Dict[str, DaySettings]:
        """Normalise weekday names and reject unknown ones."""
        normalized: Dict[str, DaySettings] = {}
        for name, settings in value.items():
            key = name.strip().lower()
            if key not in WEEKDAYS:
                raise ValueError(f"Unknown weekday '{name}', expected one of {', '.join(WEEKDAYS)}")
            normalized[key] = settings
        return normalized

    def to_schedule_config(self) -> ScheduleConfig:
        days = dict(ScheduleConfig.default().days)
        for name, settings in self.days.items():
            days[name] = settings.to_day_schedule()

        return ScheduleConfig(days=days, slot_granularity_minutes=self.slot_granularity_minutes)


class ServiceConfig(BaseModel):
    """A service offered by a company."""
    id: str
    name: str
    price: float = 0.0
    duration_minutes: int = 30

    def to_service(self) -> Service:
        return Service(
            id=self.id,
            name=self.name,
            price=self.price,
            duration_minutes=self.duration_minutes,
        )


class CompanyConfig(BaseModel):
    """One company with its schedule and service catalogue."""
    id: str
    name: str
    address: Optional[str] = None
    active: bool = True
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)
    services: List[ServiceConfig] = Field(default_factory=list)

    @field_validator("services")
    @classmethod
    def validate_services(cls, value: List[ServiceConfig]) -> List[ServiceConfig]:
        """Ensure service ids are unique within the company."""
        seen: set[str] = set()
        for service in value:
            if service.id in seen:
                raise ValueError(f"Duplicate service id detected: {service.id}")
            seen.add(service.id)
        return value

    def find_service(self, service_id: str) -> ServiceConfig | None:
        for service in self.services:
            if service.id == service_id:
                return service
        return None


class WebhookConfig(BaseModel):
    """Notification webhook; no url means events are only logged."""
    url: Optional[str] = None
    timeout_seconds: float = 10

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout_seconds must be greater than zero")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    database_url: str = "sqlite:///salonbook.db"
    timezone: Optional[str] = None  # None: host local timezone
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    companies: List[CompanyConfig] = Field(default_factory=list)

    @field_validator("companies")
    @classmethod
    def validate_companies(cls, value: List[CompanyConfig]) -> List[CompanyConfig]:
        """Ensure company ids are unique."""
        seen: set[str] = set()
        for company in value:
            if company.id in seen:
                raise ValueError(f"Duplicate company id detected: {company.id}")
            seen.add(company.id)
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    def find_company(self, company_id: str) -> CompanyConfig | None:
        """Find a company by its id."""
        for company in self.companies:
            if company.id == company_id:
                return company
        return None

    def schedules(self) -> Dict[str, ScheduleConfig]:
        """Schedule of every active company, keyed by company id."""
        return {
            company.id: company.schedule.to_schedule_config()
            for company in self.companies
            if company.active
        }

    def service_catalogues(self) -> Dict[str, List[Service]]:
        return {
            company.id: [service.to_service() for service in company.services]
            for company in self.companies
            if company.services
        }


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of salonbook/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
