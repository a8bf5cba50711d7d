import pytest
from vtc.domain.errors import UnusableDuration
from vtc.domain.models import EncodeRequest, MediaProbe
from vtc.pipeline.planner import (
    auto_settings,
    build_plan,
    compute_bitrates,
    select_preset,
    select_scale_filter,
)


class TestPresetSelection:
    @pytest.mark.parametrize("duration,expected", [
        (1, "slow"),
        (7 * 60, "slow"),
        (7 * 60 + 1, "medium"),
        (15 * 60, "medium"),
        (15 * 60 + 1, "fast"),
        (30 * 60, "fast"),
        (30 * 60 + 1, "veryfast"),
        (4 * 3600, "veryfast"),
    ])
    def test_tier_boundaries(self, duration, expected):
        assert select_preset(duration) == expected

    def test_longer_content_never_gets_a_slower_preset(self):
        order = ["slow", "medium", "fast", "veryfast"]
        ranks = [order.index(select_preset(d)) for d in range(0, 3 * 3600, 30)]
        assert ranks == sorted(ranks)


class TestScaleFilter:
    def test_below_uhd_is_untouched(self):
        assert select_scale_filter(1920, 1080) is None
        assert select_scale_filter(3839, 2160) is None

    def test_landscape_uhd_scales_to_1080_height(self):
        assert select_scale_filter(3840, 2160) == "scale=-2:1080"

    def test_portrait_uhd_scales_short_side(self):
        assert select_scale_filter(2160, 3840) == "scale=1080:-2"

    def test_no_video_stream(self):
        assert select_scale_filter(0, 0) is None


class TestAutoSettings:
    def test_auto_on_uses_tiers_and_scaling(self):
        assert auto_settings(3840, 2160, 45 * 60, auto_quality=True) == ("veryfast", "scale=-2:1080")

    def test_auto_off_forces_medium_and_no_scale(self):
        assert auto_settings(3840, 2160, 45 * 60, auto_quality=False) == ("medium", None)
        assert auto_settings(640, 360, 10, auto_quality=False) == ("medium", None)


class TestComputeBitrates:
    def test_reference_scenario(self):
        # 499 MiB over 10 minutes with 128k audio
        total_bits = 499 * 2 ** 20 * 8
        video_bits = total_bits - 128 * 1000 * 600
        assert video_bits > 0.7 * total_bits
        assert compute_bitrates(499, 600, 128) == int(video_bits / 600 / 1000)
        assert compute_bitrates(499, 600, 128) == 6848

    def test_video_floor_at_seventy_percent(self):
        # 1000k audio for an hour would leave video ~162k; the floor keeps 70% of the budget
        total_bits = 499 * 2 ** 20 * 8
        duration = 3600
        naive = int((total_bits - 1000 * 1000 * duration) / duration / 1000)
        expected = int(total_bits * 0.70 / duration / 1000)
        assert naive < expected
        assert compute_bitrates(499, duration, 1000) == expected == 813

    def test_floor_clamp(self):
        assert compute_bitrates(1, 3 * 3600, 128) == 200

    def test_ceiling_clamp(self):
        assert compute_bitrates(50000, 5, 128) == 50000

    @pytest.mark.parametrize("target_mb", [1, 8, 25, 100, 499, 4000])
    @pytest.mark.parametrize("duration", [0.5, 30, 600, 3600, 36000])
    @pytest.mark.parametrize("audio_kbps", [32, 128, 320])
    def test_always_within_bounds(self, target_mb, duration, audio_kbps):
        kbps = compute_bitrates(target_mb, duration, audio_kbps)
        assert 200 <= kbps <= 50000
        total_bits = target_mb * 2 ** 20 * 8
        unclamped = int(max(total_bits - audio_kbps * 1000 * duration, 0.7 * total_bits) / duration / 1000)
        if 200 < unclamped < 50000:
            assert kbps * 1000 * duration >= 0.7 * total_bits - 1000 * duration

    @pytest.mark.parametrize("duration", [0, -5])
    def test_unusable_duration(self, duration):
        with pytest.raises(UnusableDuration):
            compute_bitrates(499, duration, 128)


class TestBuildPlan:
    def test_h265_codec_mapping(self):
        probe = MediaProbe(duration_seconds=600, video_width=1920, video_height=1080)
        plan = build_plan(probe, EncodeRequest(codec="h265"))
        assert plan.video_codec == "libx265"
        assert plan.audio_bitrate_kbps == 128

    def test_auto_quality_does_not_change_bitrate(self):
        probe = MediaProbe(duration_seconds=40 * 60, video_width=3840, video_height=2160)
        on = build_plan(probe, EncodeRequest(target_mb=200, auto_quality=True))
        off = build_plan(probe, EncodeRequest(target_mb=200, auto_quality=False))
        assert on.video_bitrate_kbps == off.video_bitrate_kbps
        assert (on.preset, on.scale_filter) == ("veryfast", "scale=-2:1080")
        assert (off.preset, off.scale_filter) == ("medium", None)

    def test_plan_is_immutable(self):
        plan = build_plan(MediaProbe(duration_seconds=60), EncodeRequest())
        with pytest.raises(Exception):
            plan.preset = "ultrafast"
