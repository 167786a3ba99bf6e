"""Default configuration values.

DEFAULT_CONFIG is a plain dict so it can feed straight into deep_merge, which
copies everything it touches.
"""

from typing import Any

DEFAULT_PROTOCOL_NAME = "multi-stage"

DEFAULT_CONFIG: dict[str, Any] = {  # pyright: ignore[reportExplicitAny]
    "project_name": "",
    "protocol": "",
    "language": "",
    "framework": "",
    "custom_vars": {},
    "constraints": {},
    "logging": {
        "level": "info",
        "format": "json",
        "file": "",
    },
}
