from __future__ import annotations

from pathlib import Path

import numpy as np
from fakes import FakeMedia, ManualScheduler

from voicenotes.core.audio.controller import AudioCaptureController
from voicenotes.core.audio.monitor import MicrophoneHealthMonitor
from voicenotes.core.audio.recorder import MediaStreamRecorder
from voicenotes.core.scheduler import HEALTH_TASK
from voicenotes.utils.audio import concatenate_chunks, read_wave, rms_level, write_wave


def test_recorder_emits_fixed_size_chunks() -> None:
    media = FakeMedia(sample_rate=1000)
    recorder = MediaStreamRecorder(media)
    chunks = []
    recorder.subscribe(chunks.append)
    recorder.start(timeslice_ms=500)

    for _ in range(3):
        media.publish(np.ones((200, 1), dtype=np.float32))
    assert [len(chunk) for chunk in chunks] == [600]

    recorder.stop()
    assert [len(chunk) for chunk in chunks] == [600]
    assert len(media._frame_listeners) == 0


def test_recorder_ignores_frames_while_paused() -> None:
    media = FakeMedia(sample_rate=1000)
    recorder = MediaStreamRecorder(media)
    chunks = []
    recorder.subscribe(chunks.append)
    recorder.start(timeslice_ms=100)

    recorder.pause()
    media.publish(np.ones((500, 1), dtype=np.float32))
    recorder.resume()
    media.publish(np.ones((50, 1), dtype=np.float32))
    recorder.stop()

    assert [len(chunk) for chunk in chunks] == [50]


def test_controller_writes_one_wave_file(tmp_path: Path) -> None:
    media = FakeMedia()
    buffer = []
    controller = AudioCaptureController(MediaStreamRecorder, tmp_path / "rec")
    controller.start(media, buffer, timeslice_ms=1000)

    media.speak(1.0)
    media.speak(0.5)
    assert len(buffer) == 1

    audio_ref = controller.stop()

    assert audio_ref is not None
    data, sample_rate = read_wave(Path(audio_ref))
    assert sample_rate == 16_000
    assert data.shape == (24_000, 1)
    assert buffer == []
    assert not media.closed


def test_controller_without_audio_writes_nothing(tmp_path: Path) -> None:
    controller = AudioCaptureController(MediaStreamRecorder, tmp_path / "rec")
    controller.start(FakeMedia(), [], timeslice_ms=1000)
    assert controller.stop() is None
    assert not (tmp_path / "rec").exists()


def test_controller_cancel_and_discard(tmp_path: Path) -> None:
    media = FakeMedia()
    buffer = []
    controller = AudioCaptureController(MediaStreamRecorder, tmp_path / "rec")
    controller.start(media, buffer, timeslice_ms=1000)
    media.speak(1.0)

    controller.cancel()
    assert buffer == []
    assert not controller.active

    controller.start(media, buffer, timeslice_ms=1000)
    media.speak(1.0)
    audio_ref = controller.stop()
    controller.discard(audio_ref)
    assert not Path(audio_ref).exists()


def test_monitor_reports_silence_only() -> None:
    scheduler = ManualScheduler()
    messages = []
    monitor = MicrophoneHealthMonitor(scheduler, 2.0, messages.append)
    media = FakeMedia()
    monitor.start(media)
    assert scheduler.history == [(HEALTH_TASK, 2.0)]

    scheduler.fire(HEALTH_TASK)
    assert messages == []

    media.current_level = 0.0
    scheduler.fire(HEALTH_TASK)
    assert len(messages) == 1

    monitor.stop()
    assert not monitor.running


def test_wave_helpers(tmp_path: Path) -> None:
    tone = np.sin(np.linspace(0, 2 * np.pi, 800)).astype(np.float32)
    joined = concatenate_chunks([tone[:400], tone[400:]])
    assert joined.shape == (800, 1)

    path = tmp_path / "tone.wav"
    write_wave(path, joined, 8000)
    data, sample_rate = read_wave(path)
    assert sample_rate == 8000
    assert data.shape == (800, 1)
    assert rms_level(np.zeros((10, 1))) == 0.0
    assert abs(rms_level(data) - 0.707) < 0.01
