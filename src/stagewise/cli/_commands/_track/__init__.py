# pyright: reportUnusedCallResult=false, reportUnusedFunction=false
"""Track command app for disposable workspace snapshots."""

# Import command modules to register commands with the app
from . import _commands as _commands
from ._app import app

__all__ = ["app"]
