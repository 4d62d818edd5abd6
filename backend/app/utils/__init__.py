"""
Utilities for the Tubely backend.

file_validator:
    Declared media type parsing and allow-list checks
logger:
    JSON / text logging setup and context-carrying logger adapters
process:
    Bounded, cancellable execution of ffprobe / ffmpeg
"""
