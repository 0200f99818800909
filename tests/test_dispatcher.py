"""
tests/test_dispatcher.py — Integration tests for unheard.pipeline.dispatcher.

Real processors are used wherever possible; misbehaving processors
(throwing, slow, returning junk) are small stand-in classes.
"""

from __future__ import annotations

import dataclasses
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Optional
from unittest.mock import MagicMock

import numpy as np
import pytest

from conftest import checkerboard, png_bytes
from unheard.aac.library import SymbolLibrary
from unheard.core.config import DispatchConfig, UnheardConfig
from unheard.core.constants import C, InputKind
from unheard.core.errors import RegistryError
from unheard.pipeline.dispatcher import InputDispatcher, build_default_registry
from unheard.pipeline.envelope import InputEnvelope, ProcessingResult
from unheard.preprocess.codec import MediaBlob, encode_wav
from unheard.processors.base import CancellationToken
from unheard.processors.voice import VoiceProcessor


# ──────────────────────────────────────────────────────────────
# Stand-in processors
# ──────────────────────────────────────────────────────────────

class _StubProcessor:
    """Accepts anything; subclasses override ``process``."""

    fallback_content = "stub fallback"

    def validate(self, envelope: InputEnvelope) -> bool:
        return True

    def process(self, envelope: InputEnvelope, token: Optional[CancellationToken] = None):
        return ProcessingResult(envelope, "stub", 0.9)

    def fallback(self, envelope: InputEnvelope) -> ProcessingResult:
        return ProcessingResult(envelope, self.fallback_content, 0.3)


class _Throwing(_StubProcessor):
    def process(self, envelope, token=None):
        raise RuntimeError("boom")


class _Slow(_StubProcessor):
    def __init__(self) -> None:
        self.tokens: list[CancellationToken] = []

    def process(self, envelope, token=None):
        self.tokens.append(token)
        token.wait(5.0)
        token.raise_if_cancelled()
        return ProcessingResult(envelope, "too late", 1.0)


class _LowConfidence(_StubProcessor):
    def process(self, envelope, token=None):
        return ProcessingResult(envelope, "maybe", 0.3)


class _ReturnsNone(_StubProcessor):
    def process(self, envelope, token=None):
        return None


class _ReturnsErrors(_StubProcessor):
    def process(self, envelope, token=None):
        return ProcessingResult(envelope, "half", 0.9, errors=("decoder gave up",))


class _FallbackThrows(_Throwing):
    def fallback(self, envelope):
        raise ValueError("fallback exploded")


class _ValidateThrows(_StubProcessor):
    def validate(self, envelope):
        raise KeyError("missing field")


class _Rejects(_StubProcessor):
    def validate(self, envelope):
        return False


def _text(text: str = "hi", **kwargs) -> InputEnvelope:
    return InputEnvelope(InputKind.TEXT, text, **kwargs)


@pytest.fixture()
def dispatcher() -> InputDispatcher:
    return InputDispatcher()


# ──────────────────────────────────────────────────────────────
# Primary path
# ──────────────────────────────────────────────────────────────

class TestPrimaryPath:

    def test_text_is_trimmed(self, dispatcher: InputDispatcher) -> None:
        env = _text("  Hello world  ")
        res = dispatcher.dispatch(env)
        assert res.content == "Hello world"
        assert res.confidence == 1.0
        assert res.errors is None
        assert res.warnings == ()
        assert res.source_envelope is env
        assert res.elapsed_ms >= 0.0

    def test_symbols_with_phrase(self, dispatcher: InputDispatcher, library: SymbolLibrary) -> None:
        env = InputEnvelope(
            InputKind.SYMBOL,
            library.sequence(["i", "want", "water"], ["please"]),
            annotations={"complexity": "terse"},
        )
        res = dispatcher.dispatch(env)
        for word in ("I", "want", "water", "please"):
            assert word in res.content
        assert res.confidence > 0.7
        assert res.errors is None

    def test_voice(self, dispatcher: InputDispatcher, speech_blob: MediaBlob) -> None:
        res = dispatcher.dispatch(InputEnvelope(InputKind.VOICE, speech_blob))
        assert res.errors is None
        assert res.metadata["transcription"] == "pending"

    def test_camera(self, dispatcher: InputDispatcher, page_blob: MediaBlob) -> None:
        res = dispatcher.dispatch(InputEnvelope(InputKind.CAMERA, page_blob))
        assert res.errors is None
        assert "64x64" in res.content

    def test_sign_is_low_confidence_not_failure(
        self, dispatcher: InputDispatcher, clip_blob: MediaBlob
    ) -> None:
        res = dispatcher.dispatch(InputEnvelope(InputKind.SIGN, clip_blob))
        assert res.errors is None
        assert res.confidence == pytest.approx(0.4)
        assert "Low confidence: 0.40 < 0.50" in res.warnings

    def test_low_confidence_warning(self) -> None:
        d = InputDispatcher(processor_overrides={InputKind.TEXT: _LowConfidence()})
        res = d.dispatch(_text())
        assert res.errors is None
        assert res.content == "maybe"
        assert res.warnings == ("Low confidence: 0.30 < 0.50",)

    def test_threshold_is_configurable(self) -> None:
        d = InputDispatcher(
            DispatchConfig(min_confidence_threshold=0.2),
            processor_overrides={"text": _LowConfidence()},
        )
        assert d.dispatch(_text()).warnings == ()


# ──────────────────────────────────────────────────────────────
# Failure paths
# ──────────────────────────────────────────────────────────────

class TestFallback:

    def test_throwing_processor_falls_back(self) -> None:
        proc = _Throwing()
        d = InputDispatcher(processor_overrides={InputKind.TEXT: proc})
        env = _text("anything")
        res = d.dispatch(env)
        assert res.errors
        assert "boom" in res.errors
        assert res.content == proc.fallback(env).content
        assert C.FALLBACK_WARNING in res.warnings
        assert res.metadata["failed_stage"] == "processing"
        assert res.metadata["fallback"] is True
        assert res.source_envelope is env

    def test_fallback_never_gets_low_confidence_warning(self) -> None:
        d = InputDispatcher(processor_overrides={InputKind.TEXT: _Throwing()})
        res = d.dispatch(_text())
        assert res.confidence == pytest.approx(0.3)
        assert not any(w.startswith("Low confidence") for w in res.warnings)

    def test_voice_given_image_fails_before_audio_work(self, page_blob: MediaBlob) -> None:
        voice = VoiceProcessor()
        voice.process = MagicMock(wraps=voice.process)
        d = InputDispatcher(processor_overrides={InputKind.VOICE: voice})
        res = d.dispatch(InputEnvelope(InputKind.VOICE, page_blob))
        assert res.errors
        assert "kind mismatch" in res.errors[0].lower()
        voice.process.assert_not_called()
        assert res.metadata["failed_stage"] == "validation"

    def test_bare_png_bytes_as_voice(self, dispatcher: InputDispatcher) -> None:
        res = dispatcher.dispatch(InputEnvelope(InputKind.VOICE, png_bytes(checkerboard())))
        assert any("kind mismatch" in e.lower() for e in res.errors)

    def test_silent_voice_falls_back(self, dispatcher: InputDispatcher, silent_wav: bytes) -> None:
        res = dispatcher.dispatch(InputEnvelope(InputKind.VOICE, MediaBlob(silent_wav, "audio/wav")))
        assert res.errors
        assert "Voice processing failed" in res.errors
        assert "type your message instead" in res.content

    def test_blank_text_falls_back_to_reentry_prompt(self, dispatcher: InputDispatcher) -> None:
        res = dispatcher.dispatch(_text("   "))
        assert "Text input cannot be empty" in res.errors
        assert "Text processing failed" in res.errors
        assert "type your message again" in res.content

    def test_result_with_errors_counts_as_failure(self) -> None:
        d = InputDispatcher(processor_overrides={InputKind.TEXT: _ReturnsErrors()})
        res = d.dispatch(_text())
        assert res.content == "stub fallback"
        assert "decoder gave up" in res.errors

    def test_processor_returning_none(self) -> None:
        d = InputDispatcher(processor_overrides={InputKind.TEXT: _ReturnsNone()})
        res = d.dispatch(_text())
        assert "Processor returned no result" in res.errors

    def test_fallback_that_throws(self) -> None:
        d = InputDispatcher(processor_overrides={InputKind.TEXT: _FallbackThrows()})
        res = d.dispatch(_text())
        assert res.content == ""
        assert res.confidence == 0.0
        assert res.errors[0] == "boom"
        assert res.errors[-1] == "Fallback processing failed: fallback exploded"

    def test_validate_that_throws(self) -> None:
        d = InputDispatcher(processor_overrides={InputKind.TEXT: _ValidateThrows()})
        res = d.dispatch(_text())
        assert res.errors[0].startswith("Processor validation raised:")
        assert res.metadata["failed_stage"] == "validation"

    def test_processor_rejects_payload(self) -> None:
        d = InputDispatcher(processor_overrides={InputKind.TEXT: _Rejects()})
        res = d.dispatch(_text())
        assert res.errors[0] == "Invalid text input"

    def test_auto_fallback_disabled(self) -> None:
        proc = _Throwing()
        proc.fallback = MagicMock()
        d = InputDispatcher(
            DispatchConfig(auto_fallback=False),
            processor_overrides={InputKind.TEXT: proc},
        )
        res = d.dispatch(_text())
        assert res.content == ""
        assert res.confidence == 0.0
        assert res.errors == ("boom",)
        assert res.metadata["fallback"] is False
        proc.fallback.assert_not_called()


class TestEnvelopeValidation:

    def test_unknown_kind(self, dispatcher: InputDispatcher) -> None:
        res = dispatcher.dispatch(InputEnvelope("smell", "roses"))
        assert res.errors == ("No processor available for input type: smell",)
        assert res.content == ""
        assert res.metadata["fallback"] is False

    def test_string_kind_is_accepted(self, dispatcher: InputDispatcher) -> None:
        assert dispatcher.dispatch(InputEnvelope("TEXT", " ok ")).content == "ok"

    @pytest.mark.parametrize("confidence", [1.5, -0.1, float("nan"), True, "high"])
    def test_bad_declared_confidence(self, dispatcher: InputDispatcher, confidence) -> None:
        res = dispatcher.dispatch(_text(declared_confidence=confidence))
        assert "Confidence must be a number between 0 and 1" in res.errors

    def test_bad_timestamp(self, dispatcher: InputDispatcher) -> None:
        res = dispatcher.dispatch(_text(captured_at="yesterday"))
        assert "Invalid timestamp" in res.errors

    def test_aware_timestamp_is_fine(self, dispatcher: InputDispatcher) -> None:
        res = dispatcher.dispatch(_text(captured_at=datetime(2026, 1, 1, tzinfo=timezone.utc)))
        assert res.errors is None

    def test_symbol_payload_must_be_sequence(self, dispatcher: InputDispatcher) -> None:
        res = dispatcher.dispatch(InputEnvelope(InputKind.SYMBOL, ["i", "want"]))
        assert "Symbol input must be a valid SymbolSequence" in res.errors

    def test_empty_media(self, dispatcher: InputDispatcher) -> None:
        res = dispatcher.dispatch(InputEnvelope(InputKind.CAMERA, MediaBlob(b"", "image/png")))
        assert "Camera input is empty" in res.errors

    def test_non_media_payload(self, dispatcher: InputDispatcher) -> None:
        res = dispatcher.dispatch(InputEnvelope(InputKind.SIGN, "a video"))
        assert "Sign input must be a video blob" in res.errors
        res = dispatcher.dispatch(InputEnvelope(InputKind.VOICE, 123))
        assert "Voice input must be an audio blob" in res.errors

    @pytest.mark.parametrize("blob", [
        MediaBlob("RIFFabc", "audio/wav"),
        MediaBlob(None, "audio/wav"),
        MediaBlob([82, 73, 70, 70], "audio/wav"),
        MediaBlob(b"RIFF\x00\x00\x00\x00WAVE", 42),
    ])
    def test_malformed_blob_fields(self, dispatcher: InputDispatcher, blob: MediaBlob) -> None:
        res = dispatcher.dispatch(InputEnvelope(InputKind.VOICE, blob))
        assert "Voice input must be an audio blob" in res.errors
        assert res.metadata["fallback"] is True

    def test_envelope_check_crash_becomes_error(
        self, dispatcher: InputDispatcher, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def _explode(envelope):
            raise TypeError("unexpected payload")

        monkeypatch.setattr("unheard.pipeline.dispatcher.validate_envelope", _explode)
        res = dispatcher.dispatch(_text())
        assert res.errors[0] == "Malformed envelope: unexpected payload"
        assert not res.succeeded


# ──────────────────────────────────────────────────────────────
# Deadline
# ──────────────────────────────────────────────────────────────

class TestDeadline:

    def test_slow_processor_times_out(self) -> None:
        slow = _Slow()
        d = InputDispatcher(
            DispatchConfig(max_processing_time_ms=100),
            processor_overrides={InputKind.TEXT: slow},
        )
        t0 = time.monotonic()
        res = d.dispatch(_text())
        elapsed = time.monotonic() - t0
        assert elapsed < 2.0, f"dispatch took {elapsed:.2f}s with a 100ms deadline"
        assert res.errors[0] == "Processing timeout after 100ms"
        assert res.content == "stub fallback"
        assert res.metadata["failed_stage"] == "timeout"
        assert slow.tokens[0].cancelled

    def test_fast_processor_within_deadline(self) -> None:
        d = InputDispatcher(DispatchConfig(max_processing_time_ms=2000))
        assert d.dispatch(_text("quick")).errors is None


# ──────────────────────────────────────────────────────────────
# Registry and construction
# ──────────────────────────────────────────────────────────────

class TestRegistry:

    def test_default_registry_covers_every_kind(self) -> None:
        registry = build_default_registry()
        assert set(registry) == set(InputKind)

    def test_missing_kind_rejected(self) -> None:
        base = build_default_registry()
        del base[InputKind.SIGN]
        with pytest.raises(RegistryError, match="sign"):
            InputDispatcher(base_registry=base)

    def test_incomplete_processor_rejected(self) -> None:
        class _NoFallback:
            def validate(self, envelope):
                return True

            def process(self, envelope, token=None):
                return None

        with pytest.raises(RegistryError, match="fallback"):
            InputDispatcher(processor_overrides={InputKind.TEXT: _NoFallback()})

    def test_unknown_kind_key_rejected(self) -> None:
        with pytest.raises(RegistryError):
            InputDispatcher(processor_overrides={"smell": _StubProcessor()})

    def test_registry_is_read_only(self, dispatcher: InputDispatcher) -> None:
        with pytest.raises(TypeError):
            dispatcher.registry[InputKind.TEXT] = _StubProcessor()

    def test_from_config(self) -> None:
        cfg = UnheardConfig(dispatch=DispatchConfig(auto_fallback=False))
        d = InputDispatcher.from_config(cfg, processor_overrides={"text": _Throwing()})
        assert d.config.auto_fallback is False
        assert d.dispatch(_text()).content == ""


# ──────────────────────────────────────────────────────────────
# Results and concurrency
# ──────────────────────────────────────────────────────────────

class TestResults:

    def test_result_is_immutable(self, dispatcher: InputDispatcher) -> None:
        res = dispatcher.dispatch(_text("hello"))
        with pytest.raises(dataclasses.FrozenInstanceError):
            res.content = "changed"  # type: ignore[misc]
        with pytest.raises(TypeError):
            res.metadata["word_count"] = 99  # type: ignore[index]

    def test_to_dict_omits_errors_on_success(self, dispatcher: InputDispatcher) -> None:
        d = dispatcher.dispatch(_text("hello")).to_dict()
        assert d["kind"] == "text"
        assert "errors" not in d

    def test_confidence_always_in_range(self, dispatcher: InputDispatcher, library) -> None:
        envelopes = [
            _text("x"),
            _text(""),
            InputEnvelope(InputKind.SYMBOL, library.sequence(["i"])),
            InputEnvelope(InputKind.VOICE, MediaBlob(encode_wav(np.zeros(100), 16000), "audio/wav")),
            InputEnvelope("smell", None),
        ]
        for env in envelopes:
            res = dispatcher.dispatch(env)
            assert 0.0 <= res.confidence <= 1.0

    def test_concurrent_dispatches_do_not_interfere(self, dispatcher: InputDispatcher) -> None:
        envelopes = [_text(f"  message {i}  ") for i in range(40)]
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(dispatcher.dispatch, envelopes))
        for i, (env, res) in enumerate(zip(envelopes, results)):
            assert res.source_envelope is env
            assert res.content == f"message {i}"


# ──────────────────────────────────────────────────────────────
# Structured logging
# ──────────────────────────────────────────────────────────────

class TestStructuredLogging:

    def test_injected_logger_receives_dispatch_events(self) -> None:
        log = MagicMock()
        InputDispatcher(logger=log).dispatch(_text())
        events = [c.args[1] for c in log.info.call_args_list]
        assert events[:2] == ["dispatcher_ready", "dispatch_start"]
        log.perf.assert_called_once()
        assert log.perf.call_args.args[1] == "dispatch_done"
        log.warn.assert_not_called()

    def test_validation_failure_is_logged_as_warning(self) -> None:
        log = MagicMock()
        InputDispatcher(logger=log).dispatch(_text("   "))
        assert log.warn.call_args.args[1] == "validation_failed"
