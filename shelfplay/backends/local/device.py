"""
Output device discovery.

Lists PortAudio output devices through sounddevice and picks the one named
in the configuration.
"""

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class OutputDevice:
    """A PortAudio device with at least one output channel."""

    index: int
    name: str
    channels: int
    default_samplerate: float
    is_default: bool

    def describe(self) -> str:
        marker = " (default)" if self.is_default else ""
        return (
            f"[{self.index}] {self.name}{marker} "
            f"- {self.channels}ch, {int(self.default_samplerate)}Hz"
        )


def _import_sounddevice():
    """Import sounddevice on first use; PortAudio is loaded at import time."""
    try:
        import sounddevice as sd
    except (ImportError, OSError) as e:
        raise ImportError(
            f"sounddevice/PortAudio is required for the local backend: {e}"
        ) from e
    return sd


def list_output_devices() -> list[OutputDevice]:
    """Return all devices that can play audio."""
    sd = _import_sounddevice()
    default_output = sd.default.device[1]
    return [
        OutputDevice(
            index=i,
            name=dev["name"],
            channels=dev["max_output_channels"],
            default_samplerate=dev["default_samplerate"],
            is_default=(i == default_output),
        )
        for i, dev in enumerate(sd.query_devices())
        if dev["max_output_channels"] > 0
    ]


def format_device_list(devices: Optional[list[OutputDevice]] = None) -> str:
    """Format devices one per line for CLI output and error messages."""
    if devices is None:
        devices = list_output_devices()
    return "\n".join(f"  {dev.describe()}" for dev in devices)


def resolve_device(selector: str) -> OutputDevice:
    """
    Pick an output device.

    Args:
        selector: "default", a device index, or a case-insensitive name or
            name fragment

    Raises:
        ValueError: If nothing matches; the message lists available devices
    """
    devices = list_output_devices()
    if not devices:
        raise ValueError("No audio output devices found on this system")

    wanted = selector.strip()
    if wanted.lower() == "default":
        device = next((d for d in devices if d.is_default), None)
        if device is None:
            logger.warning("No default output device, using first available")
            device = devices[0]
        return device

    if wanted.isdigit():
        index = int(wanted)
        for device in devices:
            if device.index == index:
                return device
        raise ValueError(
            f"No audio output device at index {index}. "
            f"Available devices:\n{format_device_list(devices)}"
        )

    lowered = wanted.lower()
    exact = [d for d in devices if d.name.lower() == lowered]
    if exact:
        return exact[0]

    partial = [d for d in devices if lowered in d.name.lower()]
    if len(partial) > 1:
        logger.warning(f"Multiple devices match '{selector}', using {partial[0].name}")
    if partial:
        return partial[0]

    raise ValueError(
        f"No audio device matching '{selector}'. "
        f"Available devices:\n{format_device_list(devices)}"
    )
