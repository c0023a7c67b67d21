"""Canonical WAV serialization and parsing.

Layout (little-endian, 44-byte header followed by interleaved sample data)::

    0   "RIFF"            4   36 + data length     8   "WAVE"
    12  "fmt "            16  16 (fmt size)        20  format tag
    22  channels          24  sample rate          28  byte rate
    32  block align       34  bits per sample      36  "data"
    40  data length       44  samples, channel-fastest

The format tag is 1 for 8-bit output and 3 otherwise. Existing stored
artifacts use this tagging together with integer payloads, so it is kept
as-is and mirrored by ``read_wav``.
"""
import struct
from dataclasses import dataclass
import numpy as np
from voicenote.audio.models import AudioRecording
from voicenote.core.errors import DecodeError

HEADER_SIZE = 44
HEADER_FORMAT = "<4sI4s4sIHHIIHH4sI"
SUPPORTED_BIT_DEPTHS = (8, 16, 24)

FORMAT_PCM = 1
FORMAT_IEEE_FLOAT = 3


@dataclass(frozen=True)
class WavContents:
    """Parsed header fields and samples of a canonical WAV blob."""
    format_tag: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bit_depth: int
    samples: np.ndarray  # float64, shape (channels, frames)

    @property
    def frames(self) -> int:
        return int(self.samples.shape[1])


def format_tag_for(bit_depth: int) -> int:
    return FORMAT_PCM if bit_depth == 8 else FORMAT_IEEE_FLOAT


def _check_bit_depth(bit_depth: int) -> None:
    if bit_depth not in SUPPORTED_BIT_DEPTHS:
        raise ValueError(f"Unsupported bit depth {bit_depth}, expected one of {SUPPORTED_BIT_DEPTHS}")


def write_wav_header(
    data_length: int,
    sample_rate: int,
    channels: int,
    bit_depth: int
) -> bytes:
    """
    Build the 44-byte WAV header.

    Args:
        data_length: Size of the sample data in bytes
        sample_rate: Sample rate stored in the header
        channels: Number of interleaved channels
        bit_depth: Bits per sample (8, 16 or 24)

    Returns:
        Header bytes
    """
    _check_bit_depth(bit_depth)
    bytes_per_sample = bit_depth // 8
    return struct.pack(
        HEADER_FORMAT,
        b"RIFF",
        36 + data_length,
        b"WAVE",
        b"fmt ",
        16,
        format_tag_for(bit_depth),
        channels,
        sample_rate,
        sample_rate * channels * bytes_per_sample,
        channels * bytes_per_sample,
        bit_depth,
        b"data",
        data_length
    )


def _interleave(samples: np.ndarray) -> np.ndarray:
    """Clamp to [-1, 1] and flatten channel-fastest; NaN becomes silence."""
    clamped = np.clip(np.nan_to_num(samples.astype(np.float64), nan=0.0), -1.0, 1.0)
    return clamped.T.reshape(-1)


def _asymmetric_scale(interleaved: np.ndarray, negative: float, positive: float) -> np.ndarray:
    # Fractions truncate toward zero, matching the stored 16/24-bit artifacts.
    scaled = np.where(interleaved < 0, interleaved * negative, interleaved * positive)
    return np.trunc(scaled).astype(np.int32)


def encode_samples_8bit(samples: np.ndarray) -> bytes:
    """Unsigned 8-bit: ``(s * 0.5 + 0.5) * 255``, rounded half up so silence is 128."""
    interleaved = _interleave(samples)
    values = np.floor((interleaved * 0.5 + 0.5) * 255 + 0.5).astype(np.uint8)
    return values.tobytes()


def encode_samples_16bit(samples: np.ndarray) -> bytes:
    """Signed 16-bit, ``*32768`` below zero and ``*32767`` otherwise."""
    values = _asymmetric_scale(_interleave(samples), 32768.0, 32767.0)
    return values.astype("<i2").tobytes()


def encode_samples_24bit(samples: np.ndarray) -> bytes:
    """Signed 24-bit packed as three little-endian bytes per sample."""
    values = _asymmetric_scale(_interleave(samples), 8388608.0, 8388607.0)
    # Low three bytes of the little-endian int32 are the 24-bit two's complement.
    packed = values.astype("<i4").view(np.uint8).reshape(-1, 4)[:, :3]
    return packed.tobytes()


_SAMPLE_WRITERS = {
    8: encode_samples_8bit,
    16: encode_samples_16bit,
    24: encode_samples_24bit,
}


def encode_wav(recording: AudioRecording, bit_depth: int = 16) -> bytes:
    """
    Serialize a recording into a canonical WAV byte stream.

    Out-of-range samples are clamped rather than rejected.

    Args:
        recording: Decoded audio to serialize
        bit_depth: Bits per sample (8, 16 or 24)

    Returns:
        Complete WAV file bytes
    """
    _check_bit_depth(bit_depth)
    data = _SAMPLE_WRITERS[bit_depth](recording.samples)
    header = write_wav_header(len(data), recording.sample_rate, recording.channels, bit_depth)
    return header + data


def _decode_8bit(raw: bytes) -> np.ndarray:
    values = np.frombuffer(raw, dtype=np.uint8).astype(np.float64)
    return values / 127.5 - 1.0


def _decode_16bit(raw: bytes) -> np.ndarray:
    values = np.frombuffer(raw, dtype="<i2").astype(np.float64)
    return np.where(values < 0, values / 32768.0, values / 32767.0)


def _decode_24bit(raw: bytes) -> np.ndarray:
    triplets = np.frombuffer(raw, dtype=np.uint8).reshape(-1, 3).astype(np.int32)
    values = triplets[:, 0] | (triplets[:, 1] << 8) | (triplets[:, 2] << 16)
    values = np.where(values >= 1 << 23, values - (1 << 24), values).astype(np.float64)
    return np.where(values < 0, values / 8388608.0, values / 8388607.0)


_SAMPLE_READERS = {
    8: _decode_8bit,
    16: _decode_16bit,
    24: _decode_24bit,
}


def is_canonical_wav(data: bytes) -> bool:
    """Whether ``data`` carries the header layout written by ``encode_wav``."""
    if len(data) < HEADER_SIZE:
        return False
    riff, _, wave, fmt, fmt_size = struct.unpack_from("<4sI4s4sI", data)
    if riff != b"RIFF" or wave != b"WAVE" or fmt != b"fmt " or fmt_size != 16:
        return False
    format_tag, = struct.unpack_from("<H", data, 20)
    bit_depth, = struct.unpack_from("<H", data, 34)
    if data[36:40] != b"data":
        return False
    return format_tag in (FORMAT_PCM, FORMAT_IEEE_FLOAT) and bit_depth in SUPPORTED_BIT_DEPTHS


def is_float_tagged_integer_wav(data: bytes) -> bool:
    """Canonical WAV with tag 3 over an integer payload, which libsndfile refuses."""
    if not is_canonical_wav(data):
        return False
    format_tag, = struct.unpack_from("<H", data, 20)
    return format_tag == FORMAT_IEEE_FLOAT


def read_wav(data: bytes) -> WavContents:
    """
    Parse a canonical WAV blob back into header fields and float samples.

    Integer payloads are decoded with the same asymmetric scale the encoder
    uses, regardless of the format tag.

    Args:
        data: WAV file bytes

    Returns:
        WavContents with samples shaped (channels, frames)

    Raises:
        DecodeError: If the header is malformed or the data chunk is truncated
    """
    if not is_canonical_wav(data):
        raise DecodeError("Not a canonical WAV stream")

    (_, _, _, _, _, format_tag, channels, sample_rate, byte_rate,
     block_align, bit_depth, _, data_length) = struct.unpack_from(HEADER_FORMAT, data)

    if channels < 1 or sample_rate < 1:
        raise DecodeError(f"Invalid WAV header: channels={channels}, sample_rate={sample_rate}")
    if block_align != channels * (bit_depth // 8):
        raise DecodeError(f"Block align {block_align} does not match {channels}ch/{bit_depth}bit")

    payload = data[HEADER_SIZE:HEADER_SIZE + data_length]
    if len(payload) < data_length:
        raise DecodeError(f"Truncated data chunk: {len(payload)} of {data_length} bytes")
    if data_length % block_align != 0:
        raise DecodeError(f"Data length {data_length} is not a multiple of block align {block_align}")

    flat = _SAMPLE_READERS[bit_depth](payload)
    samples = flat.reshape(-1, channels).T

    return WavContents(
        format_tag=format_tag,
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bit_depth=bit_depth,
        samples=np.ascontiguousarray(samples)
    )
