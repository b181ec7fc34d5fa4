"""Generate Diego Windows installer scripts from a BOSH deployment manifest."""

__version__ = "0.1.0"
