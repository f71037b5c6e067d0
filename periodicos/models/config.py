from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class RetryConfig(BaseModel):
    """Configuration for retry logic with exponential backoff

    Controls retry behavior for transient upstream blocks:
    - Number of attempts before giving up
    - Delay calculation parameters
    - Jitter for request spreading
    """

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum attempts on a transient block (1 initial + N-1 retries)",
    )
    network_max_attempts: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Maximum attempts on a generic network error",
    )
    base_delay_seconds: float = Field(
        default=1.0,
        gt=0.0,
        le=60.0,
        description="Base delay for exponential backoff",
    )
    max_delay_seconds: float = Field(
        default=30.0,
        gt=0.0,
        le=300.0,
        description="Maximum delay cap",
    )
    jitter_factor: float = Field(
        default=0.0,
        ge=0.0,
        le=0.5,
        description="Jitter factor (0.0-0.5) for randomizing delays",
    )


class ProxySettings(BaseModel):
    """Extraction proxy used to get past the portal's anti-bot defense"""

    api_key: Optional[str] = Field(
        None, min_length=8, description="Extraction API key (from environment)"
    )
    endpoint: str = Field("https://api.zyte.com/v1/extract")
    transient_block_status: int = Field(520, ge=100, le=599)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


class OpenAlexSettings(BaseModel):
    """Citation metrics service settings"""

    base_url: str = "https://api.openalex.org"
    mailto: Optional[str] = Field(
        None, description="Contact address for the OpenAlex polite pool"
    )
    batch_size: int = Field(50, ge=1, le=50)
    batch_delay_seconds: float = Field(0.1, ge=0.0, le=10.0)
    timeout_seconds: float = Field(30.0, gt=0, le=300)


class HarvesterSettings(BaseModel):
    """Top-level harvester configuration"""

    model_config = ConfigDict(protected_namespaces=())

    timeout_seconds: float = Field(30.0, gt=0, le=600)
    max_workers: int = Field(5, ge=1, le=50)
    qualis_db_path: Optional[str] = Field(
        "data/qualis.db", description="Read-only Qualis SQLite database"
    )
    export_dir: str = Field("./exports", description="Base directory for exports")
    default_export_max_results: int = Field(100, ge=1, le=10000)
    proxy: ProxySettings = Field(default_factory=ProxySettings)
    openalex: OpenAlexSettings = Field(default_factory=OpenAlexSettings)
