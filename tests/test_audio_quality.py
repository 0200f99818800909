"""
tests/test_audio_quality.py — Unit tests for unheard.quality.audio.
"""

from __future__ import annotations

import numpy as np
import pytest

from conftest import tone_bursts
from unheard.core.config import AudioConfig
from unheard.quality.audio import analyze_audio, validate_audio_quality


class TestAnalyzeAudio:

    def test_clean_bursts_score_high(self) -> None:
        m = analyze_audio(tone_bursts(), 16000)
        assert not m.too_quiet
        assert not m.too_loud
        assert not m.has_clipping
        assert m.signal_to_noise > 30.0
        assert m.quality_score == pytest.approx(1.0)
        assert m.duration_seconds == pytest.approx(1.0)

    def test_silence_is_too_quiet_with_zero_score(self) -> None:
        m = analyze_audio(np.zeros(16000), 16000)
        assert m.too_quiet
        assert m.peak_level == 0.0
        assert m.quality_score == 0.0

    def test_empty_buffer(self) -> None:
        m = analyze_audio(np.zeros(0), 16000)
        assert m.too_quiet
        assert m.duration_seconds == 0.0
        assert m.quality_score == 0.0

    def test_full_scale_clips(self) -> None:
        m = analyze_audio(tone_bursts(amplitude=1.0, floor=0.0), 16000)
        assert m.has_clipping
        assert m.too_loud
        assert m.quality_score <= 0.4

    def test_quiet_signal_is_flagged(self) -> None:
        m = analyze_audio(tone_bursts(amplitude=0.003, floor=0.0), 16000)
        assert m.too_quiet
        assert 0.0 < m.quality_score < 1.0

    def test_stereo_is_averaged(self) -> None:
        mono = tone_bursts()
        stereo = np.stack([mono, mono], axis=1)
        assert analyze_audio(stereo, 16000).average_level == pytest.approx(
            analyze_audio(mono, 16000).average_level
        )

    def test_metrics_stay_in_range(self) -> None:
        rng = np.random.default_rng(11)
        for _ in range(10):
            buf = rng.uniform(-1.0, 1.0, size=4000) * rng.uniform(0.0, 1.0)
            m = analyze_audio(buf, 8000)
            assert 0.0 <= m.quality_score <= 1.0
            assert 0.0 <= m.average_level <= 1.0
            assert 0.0 <= m.peak_level <= 1.0
            assert 0.0 <= m.signal_to_noise <= 60.0

    def test_input_not_modified(self) -> None:
        buf = tone_bursts()
        copy = buf.copy()
        analyze_audio(buf, 16000)
        np.testing.assert_array_equal(buf, copy)

    def test_deterministic(self) -> None:
        buf = tone_bursts()
        assert analyze_audio(buf, 16000) == analyze_audio(buf, 16000)

    @pytest.mark.parametrize("rate", [0, -8000])
    def test_rejects_bad_sample_rate(self, rate: int) -> None:
        with pytest.raises(ValueError):
            analyze_audio(tone_bursts(), rate)

    def test_rejects_3d_buffer(self) -> None:
        with pytest.raises(ValueError):
            analyze_audio(np.zeros((10, 2, 2)), 16000)

    def test_thresholds_come_from_config(self) -> None:
        strict = AudioConfig(too_quiet_rms=0.09, target_rms=0.2)
        buf = tone_bursts(amplitude=0.1, floor=0.0)
        assert not analyze_audio(buf, 16000).too_quiet
        assert analyze_audio(buf, 16000, strict).too_quiet


class TestValidateAudioQuality:

    def test_clean_audio_is_valid(self) -> None:
        report = validate_audio_quality(analyze_audio(tone_bursts(), 16000))
        assert report.is_valid
        assert report.errors == ()
        assert report.warnings == ()

    def test_silence_reports_too_quiet(self) -> None:
        report = validate_audio_quality(analyze_audio(np.zeros(16000), 16000))
        assert not report.is_valid
        assert "Audio is too quiet" in report.errors
        assert len(report.suggestions) >= 1

    def test_clipping_reports_loud_and_distortion(self) -> None:
        report = validate_audio_quality(analyze_audio(tone_bursts(amplitude=1.0, floor=0.0), 16000))
        assert "Audio is too loud or clipping" in report.errors
        assert "Audio contains clipping distortion" in report.warnings

    def test_short_clip_warns(self) -> None:
        report = validate_audio_quality(analyze_audio(tone_bursts(seconds=0.1), 16000))
        assert "Audio is very short" in report.warnings

    def test_score_floor_applies(self) -> None:
        metrics = analyze_audio(tone_bursts(amplitude=0.003, floor=0.0), 16000)
        assert not validate_audio_quality(metrics, min_quality_score=0.99).is_valid

    def test_to_dict_is_plain(self) -> None:
        report = validate_audio_quality(analyze_audio(tone_bursts(), 16000))
        d = report.to_dict()
        assert d["is_valid"] is True
        assert set(d["metrics"]) >= {"signal_to_noise", "quality_score", "too_quiet"}
