"""
On-device waste classification

Turns a still image or a live camera stream into a disposal recommendation:
a waste category, a confidence score, disposal instructions and a short
justification. No image data leaves the device.
"""

__version__ = "1.0.0"
__author__ = "WasteScan Project"
