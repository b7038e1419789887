"""
Microphone capture providers.
"""

from .sounddevice_capture import SoundDeviceCapture

__all__ = ['SoundDeviceCapture']
