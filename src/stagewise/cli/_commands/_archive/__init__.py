# pyright: reportUnusedCallResult=false, reportUnusedFunction=false
"""Archive command app for permanent workspace snapshots."""

# Import command modules to register commands with the app
from . import _commands as _commands
from ._app import app

__all__ = ["app"]
