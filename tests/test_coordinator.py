"""
Tests for the turn coordinator: full cycles, crisis override, barge-in,
single-flight, epochs and error handling.
"""

import asyncio

import pytest

from companion_framework.coordinator import TurnCoordinator
from companion_framework.models.data_models import (
    Author,
    CrisisTier,
    NoticeKind,
    ProviderVariant,
)
from companion_framework.providers.transcription.fallback import FallbackTranscriber
from companion_framework.utils.error_handling import (
    AuthFailure,
    NetworkFailure,
    NoSpeechDetected,
    SynthesisError,
)
from companion_framework.utils.state_machine import TurnPhase

from conftest import FailingStore, FakeCapture, FakeCompletion, FakeTranscriber, FakeTTS, HoldingNavigation


def build_coordinator(parts, **kwargs) -> TurnCoordinator:
    return TurnCoordinator(
        capture=parts['capture'],
        transcriber=parts['transcriber'],
        replies=parts['replies'],
        synthesizer=parts['synthesizer'],
        journal=parts['journal'],
        navigation=parts['navigation'],
        **kwargs,
    )


async def run_voice_cycle(coordinator):
    assert await coordinator.start_capture()
    task = await coordinator.stop_capture()
    assert task is not None
    return await task


class TestVoiceCycle:

    @pytest.mark.asyncio
    async def test_complete_cycle(self, make_pipeline):
        parts = make_pipeline()
        coordinator = build_coordinator(parts)

        result = await run_voice_cycle(coordinator)

        assert result.transcript == "hello there"
        assert result.reply == parts['completion'].reply
        assert result.spoken
        assert coordinator.phase == TurnPhase.IDLE
        assert parts['navigation'].phases == [
            TurnPhase.CAPTURING, TurnPhase.TRANSCRIBING, TurnPhase.SCREENING,
            TurnPhase.GENERATING, TurnPhase.SYNTHESIZING, TurnPhase.PLAYING,
            TurnPhase.IDLE,
        ]
        authors = [t.author for t in parts['journal'].turns]
        assert authors == [Author.SYSTEM, Author.USER, Author.ASSISTANT]
        assert parts['cloud_tts'].synthesized == [parts['completion'].reply]

    @pytest.mark.asyncio
    async def test_history_sent_to_completion_has_no_transcription_log(self, make_pipeline):
        parts = make_pipeline()
        coordinator = build_coordinator(parts)

        await run_voice_cycle(coordinator)

        sent = parts['completion'].requests[0]
        assert sent[0]['role'] == 'system'
        assert sent[1:] == [{'role': 'user', 'content': 'hello there'}]

    @pytest.mark.asyncio
    async def test_no_speech_is_a_soft_notice(self, make_pipeline):
        parts = make_pipeline(cloud_stt=FakeTranscriber(ProviderVariant.CLOUD, [NoSpeechDetected("empty")]))
        coordinator = build_coordinator(parts)

        result = await run_voice_cycle(coordinator)

        assert result.no_speech
        assert coordinator.phase == TurnPhase.IDLE
        notice = parts['navigation'].notices[-1]
        assert notice.kind == NoticeKind.NO_SPEECH
        assert notice.dismissible
        assert parts['completion'].requests == []

    @pytest.mark.asyncio
    async def test_transcription_failure_returns_to_idle(self, make_pipeline):
        parts = make_pipeline(
            cloud_stt=FakeTranscriber(ProviderVariant.CLOUD, [AuthFailure("bad key", 401)]),
            local_stt=FakeTranscriber(ProviderVariant.LOCAL, [NetworkFailure("model missing")]),
        )
        coordinator = build_coordinator(parts)

        result = await run_voice_cycle(coordinator)

        assert result.error
        assert coordinator.phase == TurnPhase.IDLE
        assert parts['navigation'].notices[-1].kind == NoticeKind.TRANSCRIPTION_ERROR

    @pytest.mark.asyncio
    async def test_synthesis_failure_keeps_reply(self, make_pipeline):
        parts = make_pipeline(
            cloud_tts=FakeTTS(ProviderVariant.CLOUD, fail_with=AuthFailure("bad key", 401)),
            local_tts=FakeTTS(ProviderVariant.LOCAL, fail_with=SynthesisError("no engine")),
        )
        coordinator = build_coordinator(parts)

        result = await run_voice_cycle(coordinator)

        assert result.reply
        assert not result.spoken
        assert coordinator.phase == TurnPhase.IDLE
        assert parts['navigation'].notices[-1].kind == NoticeKind.SYNTHESIS_ERROR
        assert parts['journal'].turns[-1].author == Author.ASSISTANT

    @pytest.mark.asyncio
    async def test_cloud_degrade_is_sticky_across_cycles(self, make_pipeline):
        cloud = FakeTranscriber(ProviderVariant.CLOUD, [AuthFailure("bad key", 401)])
        local = FakeTranscriber(ProviderVariant.LOCAL, ["first", "second"])
        parts = make_pipeline(cloud_stt=cloud, local_stt=local)
        coordinator = build_coordinator(parts)

        first = await run_voice_cycle(coordinator)
        second = await run_voice_cycle(coordinator)

        assert (first.transcript, second.transcript) == ("first", "second")
        assert cloud.calls == 1
        assert parts['transcriber'].state.active == ProviderVariant.LOCAL


class TestCrisisOverride:

    @pytest.mark.asyncio
    async def test_critical_text_redirects_without_reply(self, make_pipeline):
        parts = make_pipeline()
        coordinator = build_coordinator(parts)

        task = await coordinator.submit_text("I want to die")
        result = await task

        assert result.redirected
        assert result.reply is None
        assert parts['completion'].requests == []
        assert len(parts['navigation'].redirects) == 1
        assert coordinator.phase == TurnPhase.IDLE
        user_turn = parts['journal'].turns[-1]
        assert user_turn.author == Author.USER
        assert user_turn.crisis_tier == CrisisTier.CRITICAL

    @pytest.mark.asyncio
    async def test_critical_voice_skips_synthesis(self, make_pipeline):
        parts = make_pipeline(cloud_stt=FakeTranscriber(ProviderVariant.CLOUD, ["I want to die"]))
        coordinator = build_coordinator(parts)

        result = await run_voice_cycle(coordinator)

        assert result.redirected
        assert parts['cloud_tts'].synthesized == []
        assert TurnPhase.GENERATING not in parts['navigation'].phases
        assert coordinator.phase == TurnPhase.IDLE

    @pytest.mark.asyncio
    async def test_advisory_shows_banner_and_replies(self, make_pipeline):
        parts = make_pipeline()
        coordinator = build_coordinator(parts)

        result = await (await coordinator.submit_text("There is so much tension at home"))

        assert result.screen.crisis_tier == CrisisTier.ADVISORY
        assert len(parts['navigation'].banners) == 1
        assert parts['navigation'].redirects == []
        assert result.reply == parts['completion'].reply
        assert coordinator.phase == TurnPhase.IDLE

    @pytest.mark.asyncio
    async def test_critical_partial_interrupts_cycle(self, make_pipeline):
        parts = make_pipeline()
        local = FakeTranscriber(ProviderVariant.LOCAL, ["I want to die tonight"],
                                partials=["I want to", "I want to die"])
        parts['transcriber'] = FallbackTranscriber(None, local)
        coordinator = build_coordinator(parts)

        result = await run_voice_cycle(coordinator)
        await asyncio.sleep(0.01)

        assert result.discarded
        assert "I want to die" in parts['navigation'].partials
        assert len(parts['navigation'].redirects) == 1
        assert coordinator.phase == TurnPhase.IDLE
        assert parts['journal'].turns == []
        assert parts['completion'].requests == []

    @pytest.mark.asyncio
    async def test_force_interrupt_during_playback(self, make_pipeline):
        cloud_tts = FakeTTS(ProviderVariant.CLOUD, auto_finish=False)
        parts = make_pipeline(cloud_tts=cloud_tts)
        coordinator = build_coordinator(parts)

        assert await coordinator.start_capture()
        task = await coordinator.stop_capture()
        await asyncio.wait_for(cloud_tts.playing.wait(), timeout=1.0)

        await coordinator.force_crisis_interrupt()
        result = await task

        assert result.interrupted
        assert cloud_tts.stops >= 1
        assert coordinator.phase == TurnPhase.IDLE
        assert len(parts['navigation'].redirects) == 1


class TestBargeInAndSingleFlight:

    @pytest.mark.asyncio
    async def test_barge_in_stops_playback_and_captures(self, make_pipeline):
        cloud_tts = FakeTTS(ProviderVariant.CLOUD, auto_finish=False)
        parts = make_pipeline(cloud_tts=cloud_tts)
        coordinator = build_coordinator(parts)

        assert await coordinator.start_capture()
        task = await coordinator.stop_capture()
        await asyncio.wait_for(cloud_tts.playing.wait(), timeout=1.0)
        assert coordinator.phase == TurnPhase.PLAYING

        assert await coordinator.start_capture()
        first = await task

        assert coordinator.phase == TurnPhase.CAPTURING
        assert cloud_tts.stops >= 1
        assert first.interrupted
        assert not first.spoken

        cloud_tts.auto_finish = True
        second = await (await coordinator.stop_capture())
        assert second.spoken
        assert coordinator.phase == TurnPhase.IDLE

    @pytest.mark.asyncio
    async def test_barge_in_while_phase_listener_runs_blocks_stale_reply(self, make_pipeline):
        cloud_tts = FakeTTS(ProviderVariant.CLOUD, auto_finish=False)
        parts = make_pipeline(cloud_tts=cloud_tts)
        navigation = HoldingNavigation(TurnPhase.PLAYING)
        parts['navigation'] = navigation
        coordinator = build_coordinator(parts)

        assert await coordinator.start_capture()
        task = await coordinator.stop_capture()
        await asyncio.wait_for(navigation.entered.wait(), timeout=1.0)

        # The cycle is past its PLAYING transition but has not started audio yet
        assert await coordinator.start_capture()
        navigation.release.set()
        first = await asyncio.wait_for(task, timeout=1.0)

        assert first.interrupted
        assert not first.spoken
        assert cloud_tts.played == []
        assert not parts['synthesizer'].playback.is_playing
        assert coordinator.phase == TurnPhase.CAPTURING

    @pytest.mark.asyncio
    async def test_busy_coordinator_ignores_new_input(self, make_pipeline):
        gate = asyncio.Event()
        parts = make_pipeline(cloud_stt=FakeTranscriber(ProviderVariant.CLOUD, ["hello"], gate=gate))
        coordinator = build_coordinator(parts)

        assert await coordinator.start_capture()
        task = await coordinator.stop_capture()
        await asyncio.sleep(0)
        assert coordinator.phase == TurnPhase.TRANSCRIBING

        assert await coordinator.start_capture() is False
        assert await coordinator.submit_text("another message") is None
        assert await coordinator.stop_capture() is None

        gate.set()
        result = await task
        assert result.spoken
        assert len(parts['completion'].requests) == 1

    @pytest.mark.asyncio
    async def test_cancel_capture_discards_audio(self, make_pipeline):
        parts = make_pipeline()
        coordinator = build_coordinator(parts)

        assert await coordinator.start_capture()
        assert await coordinator.cancel_capture()

        assert coordinator.phase == TurnPhase.IDLE
        assert parts['capture'].cancelled == 1
        assert parts['cloud_stt'].calls == 0
        assert parts['journal'].turns == []

    @pytest.mark.asyncio
    async def test_stale_epoch_result_is_discarded(self, make_pipeline):
        gate = asyncio.Event()
        parts = make_pipeline(cloud_stt=FakeTranscriber(ProviderVariant.CLOUD, ["late words"], gate=gate))
        coordinator = build_coordinator(parts)

        assert await coordinator.start_capture()
        task = await coordinator.stop_capture()
        await asyncio.sleep(0)
        epoch = coordinator.epoch

        await coordinator.force_crisis_interrupt()
        assert coordinator.epoch > epoch
        gate.set()
        result = await task

        assert result.discarded
        assert result.transcript is None
        assert parts['journal'].turns == []
        assert parts['completion'].requests == []
        assert coordinator.phase == TurnPhase.IDLE


class TestErrorsAndPermissions:

    @pytest.mark.asyncio
    async def test_permission_denied_keeps_idle(self, make_pipeline):
        capture = FakeCapture(deny=True)
        parts = make_pipeline(capture=capture)
        coordinator = build_coordinator(parts)

        assert await coordinator.start_capture() is False

        assert coordinator.phase == TurnPhase.IDLE
        assert not coordinator.voice_enabled
        notice = parts['navigation'].notices[-1]
        assert notice.kind == NoticeKind.PERMISSION_DENIED
        assert not notice.dismissible

        capture.deny = False
        assert await coordinator.start_capture() is False
        coordinator.grant_microphone_permission()
        assert await coordinator.start_capture() is True
        assert coordinator.phase == TurnPhase.CAPTURING

    @pytest.mark.asyncio
    async def test_text_still_works_without_microphone(self, make_pipeline):
        parts = make_pipeline(capture=FakeCapture(deny=True))
        coordinator = build_coordinator(parts)
        await coordinator.start_capture()

        result = await (await coordinator.submit_text("I went for a walk"))

        assert result.reply
        assert coordinator.phase == TurnPhase.IDLE

    @pytest.mark.asyncio
    async def test_unexpected_failure_enters_error_until_acknowledged(self, make_pipeline):
        parts = make_pipeline()

        def broken_screen(text):
            raise RuntimeError("screen bug")

        coordinator = build_coordinator(parts, screen=broken_screen)

        result = await (await coordinator.submit_text("hello"))

        assert result.error == "screen bug"
        assert coordinator.phase == TurnPhase.ERROR
        notice = parts['navigation'].notices[-1]
        assert notice.kind == NoticeKind.UNEXPECTED_ERROR
        assert not notice.dismissible
        assert coordinator.error_handler.get_error_summary()['total_errors'] == 1

        assert await coordinator.submit_text("hello again") is None
        assert await coordinator.acknowledge_error()
        assert coordinator.phase == TurnPhase.IDLE

    @pytest.mark.asyncio
    async def test_persistence_failure_does_not_interrupt(self, make_pipeline):
        parts = make_pipeline(session_store=FailingStore(fail_on=("append_turn",)))
        coordinator = build_coordinator(parts)

        result = await run_voice_cycle(coordinator)

        assert result.spoken
        assert coordinator.phase == TurnPhase.IDLE
        assert parts['journal'].persistence_failures == 3
        assert len(parts['journal'].history_messages()) == 2

    @pytest.mark.asyncio
    async def test_completion_timeout_yields_fallback(self, make_pipeline):
        parts = make_pipeline(completion=FakeCompletion(delay=5.0), timeout=0.05)
        coordinator = build_coordinator(parts)

        result = await asyncio.wait_for(await coordinator.submit_text("hello"), timeout=1.0)

        assert result.reply
        assert result.reply != parts['completion'].reply
        assert coordinator.phase == TurnPhase.IDLE

    @pytest.mark.asyncio
    async def test_shutdown_cancels_running_cycle(self, make_pipeline):
        gate = asyncio.Event()
        parts = make_pipeline(cloud_stt=FakeTranscriber(ProviderVariant.CLOUD, ["hello"], gate=gate))
        coordinator = build_coordinator(parts)

        assert await coordinator.start_capture()
        task = await coordinator.stop_capture()
        await asyncio.sleep(0)

        await coordinator.shutdown()

        assert task.done()
        assert coordinator.phase == TurnPhase.IDLE
