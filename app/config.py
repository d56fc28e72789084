from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from croniter import croniter
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


class CustomSettings(BaseSettings):
    """Application settings loaded from environment variables.

    Validates configuration at startup to catch misconfiguration early.
    """

    hdhomerun_host: str = "hdhomerun.local"
    epg_days: int = 7  # Days of guide data to fetch
    epg_hours_increment: int = 3  # Stride between windowed guide requests
    web_port: int = 8083

    epg_fetch_cron: str = "0 3 * * *"  # Daily at 3 AM
    epg_fetch_misfire_grace_sec: int = 3600  # Allow 1 hour to run missed jobs
    run_on_start: bool = False

    output_dir: str = "./output"
    epg_filename: str = "epg.xml"
    epg_versions_to_keep: int = 5
    epg_timezone: str = "America/Chicago"

    enable_dummy_programming: bool = False
    dummy_program_title: str = "No Information"
    dummy_program_desc: str = "No program information is currently available for {channel}."

    http_timeout_sec: float = 10.0
    http_max_retries: int = 1
    http_retry_delay_sec: float = 2.0
    http_backoff_multiplier: float = 2.0
    lineup_timeout_sec: float = 5.0
    guide_synopsis_length: int = 160

    stream_chunk_size: int = 65536
    scanner_max_element_kb: int = 1024

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("hdhomerun_host")
    @classmethod
    def validate_host(cls, value: str) -> str:
        """Strip scheme and trailing slashes from the device host."""
        host = value.strip()
        for prefix in ("http://", "https://"):
            if host.lower().startswith(prefix):
                host = host[len(prefix):]
        host = host.rstrip("/")
        if not host:
            raise ValueError("hdhomerun_host must not be empty")
        return host

    @field_validator("output_dir")
    @classmethod
    def validate_output_dir(cls, value: str) -> str:
        """Validate output directory is accessible."""
        path = Path(value)
        try:
            path.mkdir(parents=True, exist_ok=True)
            return value
        except (OSError, PermissionError) as exc:
            raise ValueError(f"Cannot access output directory '{value}': {exc}") from exc

    @field_validator("epg_filename")
    @classmethod
    def validate_epg_filename(cls, value: str) -> str:
        if not value.endswith(".xml") or "/" in value:
            raise ValueError(f"epg_filename must be a bare .xml file name: {value}")
        return value

    @field_validator("epg_days")
    @classmethod
    def validate_epg_days(cls, value: int) -> int:
        """Validate guide horizon is positive and within what the API serves."""
        if value < 1:
            raise ValueError("epg_days must be >= 1")
        if value > 14:
            raise ValueError("epg_days must be <= 14 days")
        return value

    @field_validator("epg_hours_increment")
    @classmethod
    def validate_hours_increment(cls, value: int) -> int:
        if not 1 <= value <= 24:
            raise ValueError("epg_hours_increment must be between 1 and 24")
        return value

    @field_validator("epg_timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Validate timezone is a known IANA name."""
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Invalid timezone '{value}': {exc}") from exc
        return value

    @field_validator("epg_fetch_misfire_grace_sec")
    @classmethod
    def validate_misfire_grace(cls, value: int) -> int:
        """Validate scheduler misfire grace period (seconds)."""
        if value < 0:
            raise ValueError("epg_fetch_misfire_grace_sec must be >= 0")
        return value

    @field_validator(
        "web_port",
        "epg_versions_to_keep",
        "guide_synopsis_length",
        "stream_chunk_size",
        "scanner_max_element_kb",
    )
    @classmethod
    def validate_positive_ints(cls, value: int, info) -> int:
        """Ensure integer settings are positive."""
        if value <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return value

    @field_validator("http_max_retries")
    @classmethod
    def validate_max_retries(cls, value: int) -> int:
        if value < 0:
            raise ValueError("http_max_retries must be >= 0")
        return value

    @field_validator(
        "http_timeout_sec",
        "http_retry_delay_sec",
        "lineup_timeout_sec",
    )
    @classmethod
    def validate_positive_floats(cls, value: float, info) -> float:
        """Ensure floating-point settings are positive."""
        if value <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return value

    @field_validator("http_backoff_multiplier")
    @classmethod
    def validate_backoff_multiplier(cls, value: float) -> float:
        """Ensure the backoff multiplier is at least 1."""
        if value < 1:
            raise ValueError("http_backoff_multiplier must be >= 1")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        normalized = value.upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if normalized not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}")
        return normalized

    @field_validator("epg_fetch_cron")
    @classmethod
    def validate_cron_expression(cls, value: str) -> str:
        """Validate cron expression is valid."""
        try:
            croniter(value)
            return value
        except (ValueError, KeyError) as exc:
            raise ValueError(f"Invalid cron expression '{value}': {exc}") from exc

    @model_validator(mode="after")
    def validate_dummy_configuration(self):
        """Validate cross-field configuration."""
        if self.enable_dummy_programming and "{channel}" not in self.dummy_program_desc:
            logger.warning(
                "Dummy programming description has no {channel} token - "
                "all placeholder descriptions will be identical"
            )
        return self

    def __init__(self, **data):
        """Initialize settings and log configuration."""
        super().__init__(**data)

        logger.info("Configuration loaded:")
        logger.info("  HDHomeRun Host: %s", self.hdhomerun_host)
        logger.info("  EPG Days: %s", self.epg_days)
        logger.info("  Fetch Window: %s hours", self.epg_hours_increment)
        logger.info("  Update Schedule: %s", self.epg_fetch_cron)
        logger.info("  Run On Start: %s", self.run_on_start)
        logger.info("  Timezone: %s", self.epg_timezone)
        logger.info("  HTTP Port: %s", self.web_port)
        logger.info("  Output: %s/%s", self.output_dir, self.epg_filename)
        logger.info("  Versions Kept: %s", self.epg_versions_to_keep)
        logger.info(
            "  Dummy Programming: %s",
            "enabled" if self.enable_dummy_programming else "disabled",
        )
        logger.info(
            "  HTTP: timeout=%.1fs retries=%s backoff initial=%.1fs multiplier=%.1f",
            self.http_timeout_sec,
            self.http_max_retries,
            self.http_retry_delay_sec,
            self.http_backoff_multiplier,
        )

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir)

    @property
    def epg_path(self) -> Path:
        """Path of the published EPG symlink."""
        return self.output_path / self.epg_filename

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.epg_timezone)


settings = CustomSettings()


def setup_logging() -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # httpx logs full request URLs, which carry the DeviceAuth token
    logging.getLogger("httpx").setLevel(logging.WARNING)
