"""Audio processing utilities."""

from __future__ import annotations

import wave
from pathlib import Path
from typing import BinaryIO, Iterable, Tuple, Union

import numpy as np


def read_wave(path: Path) -> Tuple[np.ndarray, int]:
    with wave.open(str(path), "rb") as wf:
        frames = wf.readframes(wf.getnframes())
        channels = wf.getnchannels()
        sample_rate = wf.getframerate()
    data = np.frombuffer(frames, dtype=np.int16).astype(np.float32)
    data = data.reshape(-1, max(channels, 1))
    data /= 32767.0
    return data, sample_rate


def write_wave(path: Union[Path, BinaryIO], data: np.ndarray, sample_rate: int) -> None:
    """Write float samples as 16-bit PCM to a path or a writable binary file."""

    if data.ndim == 1:
        data = data[:, np.newaxis]
    data = np.clip(data, -1.0, 1.0)
    int16 = (data * 32767.0).astype(np.int16)
    target = path if hasattr(path, "write") else str(path)
    with wave.open(target, "wb") as wf:
        wf.setnchannels(data.shape[1])
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(int16.tobytes())


def concatenate_chunks(chunks: Iterable[np.ndarray], channels: int = 1) -> np.ndarray:
    """Join recorder chunks into one ``(frames, channels)`` float array."""

    arrays = []
    for chunk in chunks:
        array = np.asarray(chunk, dtype=np.float32)
        if array.ndim == 1:
            array = array[:, np.newaxis]
        arrays.append(array)
    if not arrays:
        return np.zeros((0, channels), dtype=np.float32)
    return np.concatenate(arrays, axis=0)


def ensure_mono(data: np.ndarray) -> np.ndarray:
    if data.ndim == 1 or data.shape[1] == 1:
        return data.reshape(-1, 1)
    return data.mean(axis=1, keepdims=True)


def rms_level(data: np.ndarray) -> float:
    if data.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(data, dtype=np.float64))))


__all__ = [
    "concatenate_chunks",
    "ensure_mono",
    "read_wave",
    "rms_level",
    "write_wave",
]
