import pytest
from pathlib import Path
from pydantic import ValidationError
from vtc.domain.errors import JobNotReady, MissingJob, ProbeFailed, ProcessFailed, VtcError
from vtc.domain.models import EncodePlan, EncodeRequest, Job, JobStatus, MediaProbe, ProgressReport

def test_job_status_terminal():
    assert not JobStatus.QUEUED.is_terminal
    assert not JobStatus.RUNNING.is_terminal
    assert JobStatus.DONE.is_terminal
    assert JobStatus.ERROR.is_terminal
    assert JobStatus("done") is JobStatus.DONE

def test_encode_request_defaults():
    req = EncodeRequest()
    assert req.target_mb == 499
    assert req.codec == "h264"
    assert req.audio_kbps == 128
    assert req.auto_quality is True

@pytest.mark.parametrize("kwargs", [
    {"target_mb": 0},
    {"target_mb": -1},
    {"audio_kbps": 0},
    {"codec": "av1"},
])
def test_encode_request_validation(kwargs):
    with pytest.raises(ValidationError):
        EncodeRequest(**kwargs)

def test_from_form_parses_strings():
    req = EncodeRequest.from_form({"targetMB": "25.5", "codec": "h265", "audioKbps": "96", "autoQuality": "off"})
    assert req == EncodeRequest(target_mb=25.5, codec="h265", audio_kbps=96, auto_quality=False)

def test_from_form_empty_values_fall_back():
    defaults = EncodeRequest(target_mb=8, audio_kbps=64, auto_quality=False)
    req = EncodeRequest.from_form({"targetMB": "", "audioKbps": ""}, defaults)
    assert req.target_mb == 8
    assert req.audio_kbps == 64
    assert req.auto_quality is False

def test_from_form_only_exact_values_switch():
    req = EncodeRequest.from_form({"codec": "H265", "autoQuality": "no"})
    assert req.codec == "h264"
    assert req.auto_quality is True

def test_from_form_rejects_garbage():
    with pytest.raises(ValueError):
        EncodeRequest.from_form({"targetMB": "lots"})
    with pytest.raises(ValidationError):
        EncodeRequest.from_form({"targetMB": "-5"})

def test_media_probe_max_dimension():
    assert MediaProbe(duration_seconds=1, video_width=2160, video_height=3840).max_dimension == 3840
    assert MediaProbe().max_dimension == 0

def test_plan_and_job_are_frozen():
    plan = EncodePlan(preset="slow", video_bitrate_kbps=1000, audio_bitrate_kbps=128, video_codec="libx264")
    with pytest.raises(ValidationError):
        plan.preset = "fast"
    job = Job(id="a")
    with pytest.raises(ValidationError):
        job.percent = 10.0

def test_job_percent_bounds():
    with pytest.raises(ValidationError):
        Job(id="a", percent=100.5)
    with pytest.raises(ValidationError):
        Job(id="a", percent=-1)

def test_progress_report_for_job():
    job = Job(id="a", status=JobStatus.DONE, percent=100.0, message="Done",
              output_path=Path("/tmp/out-a.mp4"), output_bytes=3 * 1024 * 1024)
    report = ProgressReport.for_job(job)
    assert report.status == "done"
    assert report.output_mb == pytest.approx(3.0)
    assert report.to_wire() == {"status": "done", "percent": 100.0, "message": "Done", "outputMB": 3.0}

def test_progress_report_missing_wire():
    assert ProgressReport.missing().to_wire() == {"status": "missing"}

def test_error_hierarchy_and_messages():
    err = ProbeFailed(["ffprobe", "-v", "error"], 1, "moov atom not found\n")
    assert isinstance(err, ProcessFailed)
    assert isinstance(err, VtcError)
    assert str(err) == "ffprobe exited 1\nmoov atom not found"
    assert err.returncode == 1

    assert MissingJob("x").job_id == "x"
    not_ready = JobNotReady("x", "running")
    assert not_ready.status == "running"
    assert "running" in str(not_ready)
