"""Track command app definition."""

from cyclopts import App

app = App(
    name="track",
    help="Manage parallel workspace futures (tracks)",
    help_on_error=True,
)
