"""16-bit PCM helpers for the live-audio bridge (mono, little-endian)."""

from __future__ import annotations
import base64

import numpy as np

from ..models import PcmChunk


def resample(samples: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    """Linear-interpolation resampling; good enough for speech."""
    samples = np.asarray(samples, dtype=np.float32).reshape(-1)
    if source_rate == target_rate or samples.size == 0:
        return samples
    duration = samples.size / float(source_rate)
    target_size = max(1, int(round(duration * target_rate)))
    src_t = np.arange(samples.size, dtype=np.float64) / source_rate
    dst_t = np.arange(target_size, dtype=np.float64) / target_rate
    return np.interp(dst_t, src_t, samples).astype(np.float32)


def float_to_pcm16(samples: np.ndarray) -> bytes:
    clipped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    return (clipped * 32767.0).astype("<i2").tobytes()


def pcm16_to_float(data: bytes, channels: int = 1) -> np.ndarray:
    ints = np.frombuffer(data[: len(data) - len(data) % 2], dtype="<i2")
    floats = ints.astype(np.float32) / 32768.0
    if channels > 1:
        frames = floats.size // channels
        return floats[: frames * channels].reshape(frames, channels)
    return floats


def encode_pcm16(samples: np.ndarray, sample_rate: int) -> PcmChunk:
    return PcmChunk(
        data=base64.b64encode(float_to_pcm16(samples)).decode("ascii"),
        mime_type=f"audio/pcm;rate={sample_rate}",
    )


def decode_pcm16(data_b64: str, channels: int = 1) -> np.ndarray:
    return pcm16_to_float(base64.b64decode(data_b64), channels=channels)


def duration_seconds(samples: np.ndarray, sample_rate: int) -> float:
    frames = samples.shape[0] if samples.ndim else 0
    return frames / float(sample_rate)
