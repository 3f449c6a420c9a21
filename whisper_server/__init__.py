"""
whisper-server - Run whisper.cpp transcriptions from Python.

Transcribes audio either by spawning the one-off whisper.cpp `main` binary
and parsing its output, or by supervising a long-running whisper.cpp
`server` process and posting audio to its HTTP inference endpoint.
"""

__version__ = "0.1.0"
