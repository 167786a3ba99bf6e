from importlib.resources import files
from pathlib import Path


def get_package_dir() -> Path:
    """Get the root directory of the installed stagewise package."""
    return Path(str(files("stagewise")))


def get_assets_dir() -> Path:
    """Get the directory of bundled protocols and templates."""
    return get_package_dir() / "assets"
