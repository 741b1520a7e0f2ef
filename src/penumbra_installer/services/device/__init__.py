"""Device control services."""

from .adb import AdbDeviceController, list_devices, parse_devices
from .controller import DeviceController, shell_quote

__all__ = [
    "AdbDeviceController",
    "DeviceController",
    "list_devices",
    "parse_devices",
    "shell_quote",
]
