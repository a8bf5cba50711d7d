from enum import Enum
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional
from pydantic import BaseModel, ConfigDict, Field

class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.ERROR)

class EncodeRequest(BaseModel):
    """Caller-supplied encode parameters (already validated by the ingress)."""
    target_mb: float = Field(default=499, gt=0)
    codec: Literal["h264", "h265"] = "h264"
    audio_kbps: int = Field(default=128, gt=0)
    auto_quality: bool = True

    @classmethod
    def from_form(cls, fields: Mapping[str, Any], defaults: Optional["EncodeRequest"] = None) -> "EncodeRequest":
        """Builds a request from loosely typed form fields (targetMB, codec, audioKbps, autoQuality).

        Empty or missing numbers fall back to defaults; codec is h265 only when
        literally "h265" and auto quality is off only when literally "off".
        """
        base = defaults or cls()
        target_mb = fields.get("targetMB")
        audio_kbps = fields.get("audioKbps")
        return cls(
            target_mb=float(target_mb) if target_mb not in (None, "") else base.target_mb,
            codec="h265" if fields.get("codec") == "h265" else "h264",
            audio_kbps=int(float(audio_kbps)) if audio_kbps not in (None, "") else base.audio_kbps,
            auto_quality=(fields.get("autoQuality") != "off") if "autoQuality" in fields else base.auto_quality,
        )

class MediaProbe(BaseModel):
    model_config = ConfigDict(frozen=True)

    duration_seconds: float = 0.0
    video_width: int = 0
    video_height: int = 0

    @property
    def max_dimension(self) -> int:
        return max(self.video_width, self.video_height)

class EncodePlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    preset: str
    scale_filter: Optional[str] = None
    video_bitrate_kbps: int
    audio_bitrate_kbps: int
    video_codec: str

class Job(BaseModel):
    """Snapshot of one encode job. The registry replaces it wholesale on every patch."""
    model_config = ConfigDict(frozen=True)

    id: str
    status: JobStatus = JobStatus.QUEUED
    percent: float = Field(default=0.0, ge=0.0, le=100.0)
    message: str = ""
    input_path: Optional[Path] = None
    output_path: Optional[Path] = None
    output_bytes: Optional[int] = None
    error: Optional[str] = None
    created_at: Optional[float] = None  # TTL anchor, stamped by the reaper

class ProgressReport(BaseModel):
    status: str
    percent: float = 0.0
    message: str = ""
    error: Optional[str] = None
    output_mb: Optional[float] = None

    @classmethod
    def missing(cls) -> "ProgressReport":
        return cls(status="missing")

    @classmethod
    def for_job(cls, job: Job) -> "ProgressReport":
        return cls(
            status=job.status.value,
            percent=job.percent,
            message=job.message,
            error=job.error,
            output_mb=job.output_bytes / (1024 * 1024) if job.output_bytes else None,
        )

    def to_wire(self) -> Dict[str, Any]:
        """Camel-cased JSON body for the progress endpoint; unset fields are omitted."""
        body: Dict[str, Any] = {"status": self.status}
        if self.status == "missing":
            return body
        body.update(percent=self.percent, message=self.message)
        if self.error is not None:
            body["error"] = self.error
        if self.output_mb is not None:
            body["outputMB"] = self.output_mb
        return body
