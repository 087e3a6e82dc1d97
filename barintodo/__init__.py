"""To-do storage, a JSON RPC-style WSGI service over it, and a command-line client."""

__version__ = "0.1.0"