"""Microphone handle and device listing powered by sounddevice/PortAudio."""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ...logging import get_logger
from ...utils.audio import rms_level
from .base import CaptureInfo, MediaAccessError, MediaStream

LOGGER = get_logger(__name__)

FALLBACK_SAMPLE_RATES = (48_000, 44_100, 32_000, 24_000, 22_050, 16_000, 8_000)


def _import_sounddevice():
    try:
        import sounddevice as sd
    except (ImportError, OSError) as exc:  # OSError: PortAudio library missing
        raise MediaAccessError("sounddevice and PortAudio are required for microphone capture") from exc
    return sd


def _parse_device(device: Optional[str]) -> Optional[int | str]:
    if device is None or device == "":
        return None
    if device.isdigit():
        return int(device)
    return device


class SoundDeviceMediaStream(MediaStream):
    """An open, running ``sounddevice.InputStream``.

    The PortAudio callback fans each block out to subscribers and keeps the
    RMS level of the latest block for health checks.
    """

    def __init__(
        self,
        device: Optional[str] = None,
        sample_rate: int = 16_000,
        channels: int = 1,
        block_size: int = 1024,
    ) -> None:
        super().__init__()
        self._sd = _import_sounddevice()
        self.info = CaptureInfo(
            name="microphone",
            sample_rate=sample_rate,
            channels=channels,
            device=device,
        )
        self._device = _parse_device(device)
        self._block_size = block_size
        self._level = 0.0
        self._stream = None
        self._open()

    def _callback(self, indata, frames, time_info, status) -> None:  # pragma: no cover - runtime only
        if status:
            LOGGER.warning("sounddevice status: %s", status)
        block = indata.copy()
        self._level = rms_level(block)
        self.publish(block)

    def _sample_rate_candidates(self) -> List[int]:
        candidates = [int(self.info.sample_rate)]
        try:
            default_rate = int(float(self._sd.query_devices(self._device, "input")["default_samplerate"]))
        except Exception:
            default_rate = 0
        if default_rate and default_rate not in candidates:
            candidates.append(default_rate)
        candidates.extend(rate for rate in FALLBACK_SAMPLE_RATES if rate not in candidates)
        return candidates

    def _open(self) -> None:
        last_error: Optional[Exception] = None
        for sample_rate in self._sample_rate_candidates():
            try:
                stream = self._sd.InputStream(
                    samplerate=sample_rate,
                    channels=self.info.channels,
                    dtype="float32",
                    blocksize=self._block_size,
                    device=self._device,
                    callback=self._callback,
                )
            except (self._sd.PortAudioError, ValueError) as exc:
                last_error = exc
                if "sample rate" in str(exc).lower():
                    LOGGER.warning("Microphone %s rejected %s Hz: %s", self._device, sample_rate, exc)
                    continue
                raise MediaAccessError(f"Could not open microphone {self._device}: {exc}") from exc
            try:
                stream.start()
            except self._sd.PortAudioError as exc:  # pragma: no cover - runtime only
                last_error = exc
                with contextlib.suppress(Exception):
                    stream.close()
                raise MediaAccessError(f"Could not start microphone {self._device}: {exc}") from exc

            self._stream = stream
            if sample_rate != self.info.sample_rate:
                LOGGER.warning(
                    "Adjusted microphone sample rate from %s Hz to %s Hz",
                    self.info.sample_rate,
                    sample_rate,
                )
            self.info.sample_rate = sample_rate
            LOGGER.info("Opened microphone %s at %s Hz", self._device or "default", sample_rate)
            return

        raise MediaAccessError(
            f"No supported sample rate for microphone {self._device}: {last_error}"
        ) from last_error

    def level(self) -> float:
        return self._level

    @property
    def closed(self) -> bool:
        return self._stream is None

    def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        LOGGER.info("Closing microphone %s", self._device or "default")
        with contextlib.suppress(Exception):
            stream.stop()
        stream.close()


def open_microphone(sample_rate: int, channels: int):
    """Return a media factory opening the given device id with these parameters."""

    def _factory(device: Optional[str]) -> SoundDeviceMediaStream:
        return SoundDeviceMediaStream(device=device, sample_rate=sample_rate, channels=channels)

    return _factory


@dataclass
class DeviceInfo:
    id: int
    name: str
    max_input_channels: int
    default_samplerate: float
    hostapi: str


def list_input_devices() -> List[DeviceInfo]:
    try:
        sd = _import_sounddevice()
    except MediaAccessError:
        LOGGER.warning("sounddevice not installed; cannot list devices")
        return []

    hostapis = sd.query_hostapis()
    results: List[DeviceInfo] = []
    for idx, info in enumerate(sd.query_devices()):
        max_input = int(info.get("max_input_channels") or 0)
        if max_input <= 0:
            continue
        hostapi = hostapis[info["hostapi"]]["name"] if hostapis else "unknown"
        results.append(
            DeviceInfo(
                id=idx,
                name=info["name"],
                max_input_channels=max_input,
                default_samplerate=info.get("default_samplerate", 0.0),
                hostapi=hostapi,
            )
        )
    return results


def format_device_table(devices: Optional[Iterable[DeviceInfo]] = None) -> str:
    device_list = list_input_devices() if devices is None else list(devices)
    if not device_list:
        return "No input devices detected. Check that PortAudio is installed and a microphone is connected."

    header = f"{'ID':>3} | {'Name':<40} | {'In':>2} | {'Rate':>7} | Host API"
    lines = [header, "-" * len(header)]
    for device in device_list:
        lines.append(
            f"{device.id:>3} | {device.name:<40.40} | {device.max_input_channels:>2} | "
            f"{int(device.default_samplerate):>7} | {device.hostapi}"
        )
    return "\n".join(lines)


__all__ = [
    "DeviceInfo",
    "SoundDeviceMediaStream",
    "format_device_table",
    "list_input_devices",
    "open_microphone",
]
