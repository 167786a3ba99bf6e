"""Archive command app definition."""

from cyclopts import App

app = App(
    name="archive",
    help="Create, inspect and restore permanent workspace snapshots",
    help_on_error=True,
)
