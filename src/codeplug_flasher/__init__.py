"""
Codeplug Flasher - Read and write memory images of handheld radios

Block-transfer clone protocols for BF-888 and KT-8900 class radios over a
USB serial programming cable.
"""

__version__ = "0.1.0"

from codeplug_flasher.protocol import BF888Driver, KT8900Driver, SerialBackend
from codeplug_flasher.models import RadioModel, create_radio

__all__ = [
    "BF888Driver",
    "KT8900Driver",
    "SerialBackend",
    "RadioModel",
    "create_radio",
    "__version__",
]
