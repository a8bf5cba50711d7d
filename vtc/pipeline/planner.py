"""Encoding plan derivation: preset tier, optional downscale and bitrate split.

All functions are pure. Auto quality only changes preset and scaling; the
bitrate allocation is identical whether it is on or off.
"""

from __future__ import annotations

import math
from typing import List, Optional, Tuple

from vtc.domain.errors import UnusableDuration
from vtc.domain.models import EncodePlan, EncodeRequest, MediaProbe

# (exclusive lower bound in seconds, preset); first match wins, longer content gets faster presets
PRESET_TIERS: List[Tuple[float, str]] = [
    (30 * 60, "veryfast"),
    (15 * 60, "fast"),
    (7 * 60, "medium"),
]
SLOWEST_PRESET = "slow"
FIXED_PRESET = "medium"

UHD_THRESHOLD = 3840
HD_SHORT_SIDE = 1080

MIN_VIDEO_KBPS = 200
MAX_VIDEO_KBPS = 50000
VIDEO_SHARE_FLOOR = 0.70

VIDEO_CODECS = {"h264": "libx264", "h265": "libx265"}


def select_preset(duration_seconds: float) -> str:
    for lower_bound, preset in PRESET_TIERS:
        if duration_seconds > lower_bound:
            return preset
    return SLOWEST_PRESET


def select_scale_filter(width: int, height: int) -> Optional[str]:
    """Downscales UHD and larger frames to 1080 on the short side, keeping aspect ratio."""
    if max(width, height) < UHD_THRESHOLD:
        return None
    if width >= height:
        return f"scale=-2:{HD_SHORT_SIDE}"
    return f"scale={HD_SHORT_SIDE}:-2"


def auto_settings(width: int, height: int, duration_seconds: float, auto_quality: bool = True) -> Tuple[str, Optional[str]]:
    """Returns (preset, scale_filter)."""
    if not auto_quality:
        return FIXED_PRESET, None
    return select_preset(duration_seconds), select_scale_filter(width, height)


def compute_bitrates(target_mb: float, duration_seconds: float, audio_kbps: int) -> int:
    """Video kbps that makes video + audio land near ``target_mb`` mebibytes.

    The video share never drops below 70% of the total budget, and the result is
    clamped to [200, 50000] kbps. This is a heuristic; actual size varies.
    """
    if not duration_seconds or duration_seconds <= 0:
        raise UnusableDuration("Could not read duration.")

    total_bits = target_mb * 1024 * 1024 * 8
    audio_bits = audio_kbps * 1000 * duration_seconds
    video_bits = max(total_bits - audio_bits, total_bits * VIDEO_SHARE_FLOOR)
    video_bps = video_bits / duration_seconds
    return int(min(MAX_VIDEO_KBPS, max(MIN_VIDEO_KBPS, math.floor(video_bps / 1000))))


def build_plan(probe: MediaProbe, request: EncodeRequest) -> EncodePlan:
    video_kbps = compute_bitrates(request.target_mb, probe.duration_seconds, request.audio_kbps)
    preset, scale_filter = auto_settings(
        probe.video_width, probe.video_height, probe.duration_seconds, request.auto_quality
    )
    return EncodePlan(
        preset=preset,
        scale_filter=scale_filter,
        video_bitrate_kbps=video_kbps,
        audio_bitrate_kbps=request.audio_kbps,
        video_codec=VIDEO_CODECS[request.codec],
    )
