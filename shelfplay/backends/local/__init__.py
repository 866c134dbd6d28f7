"""Local audio output through PortAudio."""

from .backend import LocalAudioBackend, resample_chunk
from .device import OutputDevice, format_device_list, list_output_devices, resolve_device
from .ring_buffer import RingBuffer
from .stream import AudioOutputStream

__all__ = [
    "AudioOutputStream",
    "LocalAudioBackend",
    "OutputDevice",
    "RingBuffer",
    "format_device_list",
    "list_output_devices",
    "resample_chunk",
    "resolve_device",
]
