from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field, field_validator
from vtc.domain.models import EncodeRequest

class GeneralConfig(BaseModel):
    work_dir: Path = Path("/tmp/vtc")
    ffmpeg_bin: str = "ffmpeg"
    ffprobe_bin: str = "ffprobe"
    max_concurrent_jobs: int = Field(default=2, ge=1)
    log_path: Optional[str] = None
    debug: bool = False

    @field_validator("ffmpeg_bin", "ffprobe_bin")
    @classmethod
    def validate_binary(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Binary name cannot be empty")
        return v.strip()

class RetentionConfig(BaseModel):
    """Terminal jobs (and their outputs) are purged ttl_seconds after the reaper first sees them."""
    ttl_seconds: float = Field(default=30 * 60, gt=0)
    reap_interval_seconds: float = Field(default=5 * 60, gt=0)

class ServerConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = Field(default=10000, ge=0, le=65535)
    max_upload_bytes: int = Field(default=25 * 1024 ** 3, gt=0)
    download_prefix: str = "vtc"

class AppConfig(BaseModel):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    defaults: EncodeRequest = Field(default_factory=EncodeRequest)
    server: ServerConfig = Field(default_factory=ServerConfig)
