import pytest
import shutil
import yaml
from pathlib import Path
from vtc.config.models import AppConfig
from vtc.domain.models import EncodeRequest, JobStatus
from vtc.infrastructure.event_bus import EventBus
from vtc.pipeline.registry import JobRegistry

# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config(tmp_path):
    """Returns an AppConfig rooted in a temporary work directory."""
    return AppConfig(
        general={
            "work_dir": str(tmp_path / "work"),
            "ffmpeg_bin": "ffmpeg",
            "ffprobe_bin": "ffprobe",
            "max_concurrent_jobs": 1,
            "debug": False,
        },
        retention={
            "ttl_seconds": 1800,
            "reap_interval_seconds": 300,
        },
    )

@pytest.fixture
def config_yaml_path(tmp_path):
    """Creates a temporary YAML config file."""
    conf_dir = tmp_path / "conf"
    conf_dir.mkdir()
    conf_file = conf_dir / "vtc.yaml"

    content = {
        'general': {
            'work_dir': str(tmp_path / "work"),
            'ffmpeg_bin': '/opt/ffmpeg/bin/ffmpeg',
            'ffprobe_bin': '/opt/ffmpeg/bin/ffprobe',
            'max_concurrent_jobs': 3,
            'debug': True,
        },
        'retention': {
            'ttl_seconds': 600,
            'reap_interval_seconds': 60,
        },
        'defaults': {
            'targetMB': 25,
            'codec': 'h265',
            'audioKbps': 96,
            'autoQuality': 'off',
        },
        'server': {
            'port': 8080,
            'download_prefix': 'clip',
        },
    }

    with open(conf_file, 'w') as f:
        yaml.dump(content, f)

    return conf_file

@pytest.fixture
def default_request():
    return EncodeRequest()

# ============================================================================
# EventBus / Registry Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()

class FakeClock:
    """Manually advanced wall clock for retention tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def registry(event_bus, clock):
    return JobRegistry(event_bus=event_bus, ttl_seconds=1800, clock=clock)

@pytest.fixture
def running_job(registry, tmp_path):
    """Registers a job already in RUNNING state with real input/output paths."""
    input_path = tmp_path / "input.mov"
    input_path.write_bytes(b"source")
    output_path = tmp_path / "out-job1.mp4"
    registry.create("job1", status=JobStatus.QUEUED, message="Queued…",
                    input_path=input_path, output_path=output_path)
    registry.patch("job1", status=JobStatus.RUNNING, percent=1.0)
    return registry.get("job1")

# ============================================================================
# ffprobe report Fixtures
# ============================================================================

def make_probe_report(duration="600.000000", width=1920, height=1080, with_video=True):
    streams = []
    if with_video:
        streams.append({
            "index": 0,
            "codec_name": "h264",
            "codec_type": "video",
            "width": width,
            "height": height,
            "duration": "1.0",
        })
    streams.append({"index": len(streams), "codec_name": "aac", "codec_type": "audio", "duration": "599.9"})
    fmt = {"format_name": "mov,mp4,m4a,3gp,3g2,mj2"}
    if duration is not None:
        fmt["duration"] = duration
    return {"streams": streams, "format": fmt}

@pytest.fixture
def probe_report():
    return make_probe_report()

@pytest.fixture
def probe_report_factory():
    return make_probe_report

# ============================================================================
# Real binaries (integration tests)
# ============================================================================

@pytest.fixture
def ffmpeg_available():
    if not shutil.which("ffmpeg") or not shutil.which("ffprobe"):
        pytest.skip("ffmpeg/ffprobe not installed")
    return True

# ============================================================================
# Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (real ffmpeg encodes)"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
