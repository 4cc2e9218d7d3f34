"""IoT device manager: ingesta de medidas de devices hacia gemelos digitales."""

from .config import DeviceManagerConfig
from .plugin import DeviceManager

__all__ = ["DeviceManagerConfig", "DeviceManager"]

__version__ = "0.1.0"
