"""
Meeting Recorder

Joins a web meeting with a headless browser, records its audio, converts it
with ffmpeg and forwards the result to a webhook.
"""

__version__ = "1.0.0"
