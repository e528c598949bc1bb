"""
Tests for the compositor.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from shared.errors import VideoProcessingError
from modules.compositor.compositor import (
    Compositor,
    encode_progress,
    parse_progress_time,
    reconcile_timings,
)


class TestReconcileTimings:
    """Test duration reconciliation."""

    def test_within_tolerance_unchanged(self):
        timings, target = reconcile_timings([10.0, 10.0, 10.0], 27.5)
        assert timings == [10.0, 10.0, 10.0]
        assert target == 27.5

    def test_rescaled_to_audio(self):
        timings, target = reconcile_timings([10.0, 10.0, 10.0], 30.0)

        assert target == 30.0
        displayed = sum(timings) - 2 * 1.0
        assert displayed == pytest.approx(30.0)

    def test_target_clamped_to_bounds(self):
        timings, target = reconcile_timings([12.0, 12.0], 50.0)
        assert target == 40.0
        assert sum(timings) - 1.0 == pytest.approx(40.0)

        timings, target = reconcile_timings([5.0, 5.0], 10.0)
        assert target == 25.0
        assert sum(timings) - 1.0 == pytest.approx(25.0)

    def test_single_segment_has_no_overlap(self):
        timings, target = reconcile_timings([12.0], 30.0)
        assert timings == pytest.approx([30.0])

    def test_rescale_not_reclamped(self):
        timings, _ = reconcile_timings([12.0, 12.0, 12.0], 40.0)
        assert max(timings) > 12.0


class TestProgressParsing:
    """Test encoder status line parsing."""

    def test_parse_time(self):
        line = "frame=  450 fps= 60 q=28.0 size=1024kB time=00:01:02.50 bitrate=134.2kbits/s"
        assert parse_progress_time(line) == pytest.approx(62.5)

    def test_no_time(self):
        assert parse_progress_time("Input #0, image2, from 'image_0.png':") is None
        assert parse_progress_time("time=N/A") is None

    def test_progress_band(self):
        assert encode_progress(0, 30) == 30
        assert encode_progress(15, 30) == pytest.approx(62.5)
        assert encode_progress(60, 30) == 95


class TestCompose:
    """Test the full compose flow with a fake encoder."""

    @pytest.mark.asyncio
    async def test_success(self, media_files, make_process, spawning):
        images, audio, output = media_files
        probe = AsyncMock(side_effect=[30.0, 29.87])
        compositor = Compositor(probe=probe)
        process = make_process(
            b"ffmpeg version 6\nframe=1 time=00:00:07.50 speed=1x\rframe=2 time=00:00:15.00 speed=1x\r"
        )
        compositor._spawn = AsyncMock(side_effect=spawning(process))
        on_progress = AsyncMock()

        result = await compositor.compose(images, audio, [10.0, 10.0, 10.0], output, on_progress)

        assert result.video_path == output
        assert result.measured_duration_seconds == 29.87
        assert result.transition_count == 2
        assert sum(result.final_timings) - 2.0 == pytest.approx(30.0, abs=0.01)

        progress = [call.args[0] for call in on_progress.await_args_list]
        assert progress[:4] == [0, 10, 20, 30]
        assert progress[-2:] == [95, 100]
        encode = progress[4:-2]
        assert encode == pytest.approx([46.25, 62.5])
        assert progress == sorted(progress)

        probe.assert_any_await(audio)
        probe.assert_any_await(output)

    @pytest.mark.asyncio
    async def test_duration_comes_from_output_probe(self, media_files, make_process, spawning):
        images, audio, output = media_files
        compositor = Compositor(probe=AsyncMock(side_effect=[28.0, 31.25]))
        compositor._spawn = AsyncMock(side_effect=spawning(make_process()))

        result = await compositor.compose(images, audio, [10.0, 10.0, 10.0], output)
        assert result.measured_duration_seconds == 31.25

    @pytest.mark.asyncio
    async def test_encoder_args_use_adjusted_timings(self, media_files, make_process, spawning):
        images, audio, output = media_files
        compositor = Compositor(ffmpeg_binary="/opt/ffmpeg", probe=AsyncMock(side_effect=[30.0, 30.0]))
        compositor._spawn = AsyncMock(side_effect=spawning(make_process()))

        await compositor.compose(images, audio, [10.0, 10.0, 10.0], output)

        args = compositor._spawn.await_args.args[0]
        assert args[0] == "/opt/ffmpeg"
        assert "10.000" not in args
        assert args[args.index("-filter_complex") + 1].count("xfade") == 2

    @pytest.mark.asyncio
    async def test_timeout_kills_and_removes_partial(self, media_files, make_process, spawning):
        images, audio, output = media_files
        process = make_process(b"frame=1 time=00:00:01.00\r", finish=False)
        compositor = Compositor(encoder_timeout=0.05, probe=AsyncMock(return_value=30.0))
        compositor._spawn = AsyncMock(side_effect=spawning(process))

        with pytest.raises(VideoProcessingError) as exc_info:
            await compositor.compose(images, audio, [10.0, 10.0, 10.0], output)

        assert "timed out" in exc_info.value.message
        process.kill.assert_called_once()
        process.wait.assert_awaited()
        assert not output.exists()

    @pytest.mark.asyncio
    async def test_nonzero_exit(self, media_files, make_process, spawning):
        images, audio, output = media_files
        process = make_process(b"Error initializing filter 'zoompan'\n", returncode=1)
        compositor = Compositor(probe=AsyncMock(return_value=30.0))
        compositor._spawn = AsyncMock(side_effect=spawning(process))

        with pytest.raises(VideoProcessingError) as exc_info:
            await compositor.compose(images, audio, [10.0, 10.0, 10.0], output)

        assert "exit code 1" in exc_info.value.message
        assert "zoompan" in exc_info.value.details
        assert not output.exists()

    @pytest.mark.asyncio
    async def test_missing_encoder(self, media_files):
        images, audio, output = media_files
        compositor = Compositor(ffmpeg_binary="no-such-ffmpeg", probe=AsyncMock(return_value=30.0))
        compositor._spawn = AsyncMock(side_effect=FileNotFoundError("no-such-ffmpeg"))

        with pytest.raises(VideoProcessingError) as exc_info:
            await compositor.compose(images, audio, [10.0, 10.0, 10.0], output)
        assert "no-such-ffmpeg" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_mismatched_inputs(self, media_files):
        images, audio, output = media_files
        compositor = Compositor(probe=AsyncMock(return_value=30.0))

        with pytest.raises(VideoProcessingError):
            await compositor.compose(images, audio, [10.0, 10.0], output)

    @pytest.mark.asyncio
    async def test_audio_probe_failure_propagates(self, media_files):
        images, audio, output = media_files
        compositor = Compositor(probe=AsyncMock(side_effect=VideoProcessingError("Failed to probe voiceover.mp3")))
        compositor._spawn = AsyncMock()

        with pytest.raises(VideoProcessingError):
            await compositor.compose(images, audio, [10.0, 10.0, 10.0], output)
        compositor._spawn.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_kills_encoder_and_removes_partial(self, media_files, make_process, spawning):
        images, audio, output = media_files
        process = make_process(b"frame=1 time=00:00:01.00\r", finish=False)
        compositor = Compositor(probe=AsyncMock(return_value=30.0))
        compositor._spawn = AsyncMock(side_effect=spawning(process))

        task = asyncio.create_task(compositor.compose(images, audio, [10.0, 10.0, 10.0], output))
        while not compositor._spawn.await_count:
            await asyncio.sleep(0)
        await asyncio.sleep(0.01)
        assert output.exists()

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        process.kill.assert_called_once()
        process.wait.assert_awaited()
        assert not output.exists()

    @pytest.mark.asyncio
    async def test_progress_callback_error_kills_encoder(self, media_files, make_process, spawning):
        images, audio, output = media_files
        process = make_process(b"frame=1 time=00:00:05.00\r", finish=False)
        compositor = Compositor(probe=AsyncMock(return_value=30.0))
        compositor._spawn = AsyncMock(side_effect=spawning(process))

        async def on_progress(progress, message):
            if progress > 30:
                raise RuntimeError("subscriber went away")

        with pytest.raises(RuntimeError):
            await compositor.compose(images, audio, [10.0, 10.0, 10.0], output, on_progress)

        process.kill.assert_called_once()
        assert process.returncode == -9
        assert not output.exists()

    @pytest.mark.asyncio
    async def test_finished_encoder_not_killed(self, media_files, make_process, spawning):
        images, audio, output = media_files
        process = make_process()
        compositor = Compositor(probe=AsyncMock(side_effect=[30.0, 30.0]))
        compositor._spawn = AsyncMock(side_effect=spawning(process))

        await compositor.compose(images, audio, [10.0, 10.0, 10.0], output)

        process.kill.assert_not_called()
        assert output.exists()
