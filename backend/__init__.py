"""Backend package for the input bookmarking service.

This package provides the FastAPI web server that hosts bookmarkable UI
sessions over HTTP and WebSocket.
"""

__version__ = "1.0.0"
