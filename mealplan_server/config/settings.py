from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str = "duckdb://./data/mealplan.duckdb"

    # API
    api_title: str = "Meal Subscription API"
    api_version: str = "1.0.0"
    api_prefix: str = "/api/v1"

    # Kitchen reports
    upcoming_days: int = 3  # daily-orders report window
    cancelled_lookback_days: int = 30  # pipeline only counts recent cancellations

    # Development
    debug: bool = False
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = "MEALPLAN_"
        case_sensitive = False

    @property
    def database_path(self) -> str:
        """Strip the ``duckdb://`` scheme from ``database_url``."""
        db_url = self.database_url
        if db_url.startswith("duckdb://"):
            db_url = db_url[len("duckdb://"):]
        # duckdb:///:memory: leaves a leading slash behind
        if db_url.lstrip("/") == ":memory:":
            return ":memory:"
        return db_url


# Default settings instance
settings = Settings()
