import shutil
import threading
import typer
from pathlib import Path
from typing import Optional
from rich.console import Console
from rich.table import Table
from vtc.config.loader import load_config
from vtc.config.models import AppConfig
from vtc.domain.errors import VtcError
from vtc.domain.models import EncodeRequest, JobStatus
from vtc.infrastructure.event_bus import EventBus
from vtc.infrastructure.ffprobe import FFprobeAdapter
from vtc.infrastructure.logging import setup_logging
from vtc.infrastructure.web_server import VtcWebServer
from vtc.pipeline.planner import build_plan
from vtc.pipeline.service import build_service
from vtc.ui.progress_view import JobProgressView

app = typer.Typer(help="vtc (Video Target-size Compressor) - two-pass encodes that fit a size budget")

DEFAULT_CONFIG_PATH = Path("conf/vtc.yaml")

console = Console()


def _load(config_path: Optional[Path], work_dir: Optional[Path], debug: bool) -> AppConfig:
    """Explicit --config must exist; otherwise conf/vtc.yaml is used when present, else built-in defaults."""
    if config_path is not None:
        config = load_config(config_path)
    elif DEFAULT_CONFIG_PATH.exists():
        config = load_config(DEFAULT_CONFIG_PATH)
    else:
        config = AppConfig()
    if work_dir is not None:
        config.general.work_dir = work_dir
    if debug:
        config.general.debug = True
    return config


def _request(config: AppConfig, target_mb: Optional[float], codec: Optional[str],
             audio_kbps: Optional[int], auto_quality: Optional[bool]) -> EncodeRequest:
    base = config.defaults
    return EncodeRequest(
        target_mb=target_mb if target_mb is not None else base.target_mb,
        codec=codec if codec is not None else base.codec,
        audio_kbps=audio_kbps if audio_kbps is not None else base.audio_kbps,
        auto_quality=auto_quality if auto_quality is not None else base.auto_quality,
    )


def _fail(message: str, code: int = 1):
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=code)


@app.command()
def encode(
    input_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Media file to compress"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output path (default: <input>_vtc.mp4)"),
    target_mb: Optional[float] = typer.Option(None, "--target-mb", "-s", help="Target output size in MB"),
    codec: Optional[str] = typer.Option(None, "--codec", help="h264 or h265"),
    audio_kbps: Optional[int] = typer.Option(None, "--audio-kbps", help="AAC bitrate in kbps"),
    auto_quality: Optional[bool] = typer.Option(None, "--auto-quality/--no-auto-quality", help="Duration-based preset and UHD downscale"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    work_dir: Optional[Path] = typer.Option(None, "--work-dir", help="Override work directory"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Compress one file in-process with a live progress bar."""
    try:
        config = _load(config_path, work_dir, debug)
        request = _request(config, target_mb, codec, audio_kbps, auto_quality)
    except (FileNotFoundError, ValueError) as exc:
        _fail(str(exc))

    output = output or input_file.with_name(f"{input_file.stem}_vtc.mp4")
    logger = setup_logging(config.general.work_dir, debug=config.general.debug,
                           log_path=Path(config.general.log_path) if config.general.log_path else None)

    bus = EventBus()
    service = build_service(config, event_bus=bus)
    service.upload_dir.mkdir(parents=True, exist_ok=True)

    # The job deletes its input when it concludes; never hand it the user's file.
    staged = service.upload_dir / f"cli-{input_file.name}"
    shutil.copy2(input_file, staged)

    try:
        with JobProgressView(bus, console=console) as view:
            job_id = service.start_job(staged, request)
            view.bind(job_id)
            job = view.wait()
    except KeyboardInterrupt:
        typer.secho("\nInterrupted; the running ffmpeg process is left to finish on its own.", fg=typer.colors.YELLOW)
        raise typer.Exit(code=130)
    finally:
        service.close(wait=False)

    if job is None or job.status != JobStatus.DONE:
        _fail(job.error if job and job.error else "Encode failed")

    shutil.move(str(service.get_artifact(job.id)), str(output))
    size_mb = (job.output_bytes or 0) / (1024 * 1024)
    logger.info(f"Wrote {output} ({size_mb:.1f}MB)")
    typer.secho(f"✓ {output} ({size_mb:.1f}MB, target {request.target_mb:g}MB)", fg=typer.colors.GREEN)


@app.command()
def plan(
    input_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Media file to analyze"),
    target_mb: Optional[float] = typer.Option(None, "--target-mb", "-s", help="Target output size in MB"),
    codec: Optional[str] = typer.Option(None, "--codec", help="h264 or h265"),
    audio_kbps: Optional[int] = typer.Option(None, "--audio-kbps", help="AAC bitrate in kbps"),
    auto_quality: Optional[bool] = typer.Option(None, "--auto-quality/--no-auto-quality"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
):
    """Probe a file and print the encoding plan without encoding."""
    try:
        config = _load(config_path, None, False)
        request = _request(config, target_mb, codec, audio_kbps, auto_quality)
        probe = FFprobeAdapter(config.general.ffprobe_bin).probe(input_file)
        encode_plan = build_plan(probe, request)
    except (FileNotFoundError, ValueError, VtcError) as exc:
        _fail(str(exc).splitlines()[0] if str(exc) else exc.__class__.__name__)

    table = Table(title=f"Plan: {input_file.name}", show_header=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_row("Duration", f"{probe.duration_seconds:.2f}s")
    table.add_row("Geometry", f"{probe.video_width}x{probe.video_height}")
    table.add_row("Target", f"{request.target_mb:g}MB")
    table.add_row("Codec", encode_plan.video_codec)
    table.add_row("Preset", encode_plan.preset)
    table.add_row("Scale", encode_plan.scale_filter or "none")
    table.add_row("Video bitrate", f"{encode_plan.video_bitrate_kbps}k")
    table.add_row("Audio bitrate", f"{encode_plan.audio_bitrate_kbps}k")
    console.print(table)


@app.command()
def serve(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port"),
    work_dir: Optional[Path] = typer.Option(None, "--work-dir", help="Override work directory"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Run the HTTP backend with the retention reaper."""
    try:
        config = _load(config_path, work_dir, debug)
    except (FileNotFoundError, ValueError) as exc:
        _fail(str(exc))
    if host is not None:
        config.server.host = host
    if port is not None:
        config.server.port = port

    logger = setup_logging(config.general.work_dir, debug=config.general.debug,
                           log_path=Path(config.general.log_path) if config.general.log_path else None,
                           console=True)
    logger.info(f"Config: work_dir={config.general.work_dir}, workers={config.general.max_concurrent_jobs}, "
                f"ttl={config.retention.ttl_seconds:g}s, reap_every={config.retention.reap_interval_seconds:g}s")

    service = build_service(config)
    service.start()
    server = VtcWebServer(service, port=config.server.port, host=config.server.host)
    try:
        server.start()
    except OSError as exc:
        service.close(wait=False)
        _fail(f"could not bind to {config.server.host}:{config.server.port}: {exc}")

    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        typer.secho("\nShutting down…", fg=typer.colors.YELLOW)
    finally:
        server.stop()
        service.close(wait=False)


if __name__ == "__main__":
    app()
