"""Picker configuration file management.

Reads the .testpicker_config JSON file at the package root.  Every key is
optional; missing keys and unreadable files fall back to DEFAULT_CONFIG.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

CONFIG_FILE = ".testpicker_config"

# Default configuration values
DEFAULT_CONFIG: dict[str, Any] = {
    "test_dir": "test",
    "state_dir": ".testpicker",
    "julia": "julia",
    "fzf": "fzf",
    "previewer": "bat",
    "block_macros": [],
    "testitem": True,
    "activate_test_env": False,
    "on_parse_error": "abort",
}


class PickerConfig:
    """Manages the .testpicker_config JSON configuration file."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        if path is not None and path.exists():
            self._load()

    @classmethod
    def for_package(cls, package_path: str | Path) -> PickerConfig:
        return cls(Path(package_path) / CONFIG_FILE)

    def _load(self) -> None:
        """Load config from the file."""
        assert self.path is not None
        try:
            data = json.loads(self.path.read_text())
            if isinstance(data, dict):
                self._data = {**DEFAULT_CONFIG, **data}
        except (json.JSONDecodeError, OSError):
            self._data = dict(DEFAULT_CONFIG)

    def save(self) -> None:
        """Write config to the file."""
        if self.path is None:
            raise ValueError("No config file path specified")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(self._data, f, indent=2)
            f.write("\n")

    @property
    def config(self) -> dict[str, Any]:
        """Get the full configuration dict."""
        return dict(self._data)

    def _str(self, key: str) -> str:
        value = self._data.get(key)
        return str(value) if value else str(DEFAULT_CONFIG[key])

    @property
    def test_dir(self) -> str:
        """Test directory relative to the package root."""
        return self._str("test_dir")

    @property
    def state_dir(self) -> str:
        """Directory (relative to the package root) for results and caches."""
        return self._str("state_dir")

    @property
    def julia(self) -> str:
        return self._str("julia")

    @property
    def fzf(self) -> str:
        return self._str("fzf")

    @property
    def previewer(self) -> str | None:
        """Syntax-highlighting pager for previews (None = plain text)."""
        value = self._data.get("previewer", DEFAULT_CONFIG["previewer"])
        return str(value) if value else None

    @property
    def block_macros(self) -> list[str]:
        """Extra macros whose string-labelled invocations are test blocks."""
        value = self._data.get("block_macros") or []
        if isinstance(value, str):
            value = value.split(",")
        return [str(v).strip() for v in value if str(v).strip()]

    @property
    def testitem(self) -> bool:
        return bool(self._data.get("testitem", DEFAULT_CONFIG["testitem"]))

    @property
    def activate_test_env(self) -> bool:
        return bool(self._data.get("activate_test_env", DEFAULT_CONFIG["activate_test_env"]))

    @property
    def on_parse_error(self) -> str:
        """Policy for unparseable test files: "abort" or "skip"."""
        value = self._data.get("on_parse_error", DEFAULT_CONFIG["on_parse_error"])
        return value if value in ("abort", "skip") else DEFAULT_CONFIG["on_parse_error"]

    def set_config(self, **values: Any) -> None:
        """Update configuration values; None leaves a key unchanged."""
        for key, value in values.items():
            if key not in DEFAULT_CONFIG:
                raise KeyError(f"Unknown configuration key: {key}")
            if value is not None:
                self._data[key] = value
