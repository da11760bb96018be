# cdnstats/config.py

from typing import Optional
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # MySQL connection
    db_host: str = "localhost"
    db_port: int = 3306
    db_user: str = "root"
    db_password: str = "changeme"
    db_name: str = "dns_database"

    # Full SQLAlchemy URL, overrides the MySQL fields above when set
    db_url: Optional[str] = None

    # Connection pool
    db_pool_size: int = 10
    db_pool_overflow: int = 20

    # Upstream sources
    telemetry_url: str = "http://194.120.230.143:3000/data/domain"
    telemetry_category: int = 4
    telemetry_timeout_seconds: int = 120
    telemetry_max_bytes: int = 256 * 1024 * 1024
    domain_list_url: str = "https://slave.host-palace.net/user_domain_list"
    domain_list_timeout_seconds: int = 30
    node_list_url: str = "https://slave.host-palace.net/portugal_cdn/get_node_list"

    # Edge node log fetching
    node_category: int = 4
    node_log_url_template: str = "http://{ip}:29876/stream{ip_long}.log"
    node_fetch_timeout_seconds: float = 10
    node_fetch_concurrency: int = 16
    node_fetch_deadline_seconds: Optional[float] = None
    node_user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

    # Aggregation
    aggregation_interval_seconds: int = 300
    retention_days: int = 7

    # Local log file served by /getlogs
    log_file_path: str = "./data/stream.log"

    @property
    def database_url(self) -> str:
        if self.db_url:
            return self.db_url
        password = quote_plus(self.db_password)
        return (
            f"mysql+pymysql://{self.db_user}:{password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    model_config = SettingsConfigDict(env_file=".env", env_prefix="CDNSTATS_")


settings = Settings()
