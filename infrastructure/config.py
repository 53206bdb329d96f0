"""
Application configuration
Read from environment variables or a local .env file
"""
from datetime import time

from pydantic import ConfigDict
from pydantic_settings import BaseSettings

from domain.enums import CalculationMode
from domain.value_objects import BookingSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Stay Resolution & Composite Reservation API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Booking defaults, used when the settings store is still empty
    DEFAULT_CALCULATION_MODE: CalculationMode = CalculationMode.BY_DAY
    DEFAULT_CHECK_IN_TIME: time = time(15, 0)
    DEFAULT_CHECK_OUT_TIME: time = time(12, 0)

    model_config = ConfigDict(env_file=".env", case_sensitive=True)

    def default_booking_settings(self) -> BookingSettings:
        return BookingSettings(
            calculation_mode=self.DEFAULT_CALCULATION_MODE,
            check_in_time=self.DEFAULT_CHECK_IN_TIME,
            check_out_time=self.DEFAULT_CHECK_OUT_TIME,
        )


# Global settings instance
settings = Settings()
