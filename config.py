#!/usr/bin/env python3
"""
Configuration management for the vault exporter.

Settings live in config.json. Export code never reads this file directly:
it receives an immutable VaultConfig built from it for each call.
"""
import json
import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

CONFIG_FILE = Path(__file__).parent / "config.json"

NOTE_KINDS = ("daily", "session", "weekly")

DEFAULT_CONFIG = {
    "data_dir": "data",               # capture store JSON files
    "log_dir": "logs",

    "obsidian": {
        "enabled": False,
        "vault_path": "",             # required when enabled
        "root_folder": "ScreenAnalyzer",
        "export_mode": "link",        # "link" or "copy"
        "include_screenshots": True,
        "include_video_link": True,
        "templates": {"daily": "", "session": "", "weekly": ""},

        # productivity = focus * focus_weight% + effort * (100 - focus_weight)%
        "focus_weight": 70,
        "daily_target_minutes": 480,
        "weekly_target_minutes": 2400,
        "top_categories": 5,
        "max_workers": 4,
    },
}


class ScoreWeights(BaseModel):
    """Weights for effort/productivity scoring."""
    model_config = ConfigDict(frozen=True)

    focus_weight: int = Field(default=70, ge=0, le=100)
    daily_target_minutes: int = Field(default=480, ge=1)
    weekly_target_minutes: int = Field(default=2400, ge=1)
    top_categories: int = Field(default=5, ge=1)

    @property
    def effort_weight(self) -> int:
        return 100 - self.focus_weight


class VaultConfig(BaseModel):
    """Immutable export settings passed into every export call."""
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    vault_path: str = ""
    root_folder: str = "ScreenAnalyzer"
    export_mode: Literal["link", "copy"] = "link"
    include_screenshots: bool = True
    include_video_link: bool = True
    templates: dict[str, str] = Field(default_factory=dict)
    weights: ScoreWeights = Field(default_factory=ScoreWeights)
    max_workers: int = Field(default=4, ge=1)

    def template_path(self, kind: str) -> Path | None:
        raw = (self.templates.get(kind) or "").strip()
        return Path(raw) if raw else None


def _merge(defaults: dict, overrides: dict) -> dict:
    merged = dict(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(defaults.get(key), dict):
            merged[key] = _merge(defaults[key], value)
        else:
            merged[key] = value
    return merged


def load_config() -> dict:
    """
    Load configuration from config.json.
    Creates file with defaults if it doesn't exist.
    """
    if CONFIG_FILE.exists():
        with open(CONFIG_FILE, 'r', encoding='utf-8') as f:
            config = json.load(f)
        # Merge with defaults to handle new config options
        return _merge(DEFAULT_CONFIG, config)
    else:
        save_config(DEFAULT_CONFIG)
        return _merge(DEFAULT_CONFIG, {})


def save_config(config: dict) -> None:
    """Save configuration to config.json."""
    with open(CONFIG_FILE, 'w', encoding='utf-8') as f:
        json.dump(config, f, indent=2)


def vault_config_from_dict(config: dict = None) -> VaultConfig:
    """Build the immutable VaultConfig from the `obsidian` section."""
    if config is None:
        config = load_config()
    section = _merge(DEFAULT_CONFIG["obsidian"], config.get("obsidian", {}))

    weights = ScoreWeights(
        focus_weight=section["focus_weight"],
        daily_target_minutes=section["daily_target_minutes"],
        weekly_target_minutes=section["weekly_target_minutes"],
        top_categories=section["top_categories"],
    )
    return VaultConfig(
        enabled=bool(section["enabled"]),
        vault_path=(section["vault_path"] or "").strip(),
        root_folder=(section["root_folder"] or "").strip().strip("/"),
        export_mode=section["export_mode"],
        include_screenshots=bool(section["include_screenshots"]),
        include_video_link=bool(section["include_video_link"]),
        templates={k: v for k, v in (section.get("templates") or {}).items() if v},
        weights=weights,
        max_workers=section["max_workers"],
    )


def validate_vault_config(vault: VaultConfig) -> tuple[bool, str]:
    """
    Validate a VaultConfig is usable for writing.
    Returns (is_valid, error_message).
    """
    if not vault.enabled:
        return False, "Vault export is disabled"

    if not vault.vault_path:
        return False, "No vault_path configured"

    root = Path(vault.vault_path).expanduser()
    if not root.exists():
        return False, f"Vault path does not exist: {root}"
    if not root.is_dir():
        return False, f"Vault path is not a directory: {root}"
    if not os.access(root, os.W_OK):
        return False, f"Vault path is not writable: {root}"

    for kind, raw in vault.templates.items():
        if kind not in NOTE_KINDS:
            return False, f"Unknown template kind: {kind}. Must be one of {', '.join(NOTE_KINDS)}"
        path = vault.template_path(kind)
        if path is not None and not path.is_file():
            return False, f"Template override for {kind} not found: {raw}"

    return True, ""


def validate_config(config: dict = None) -> tuple[bool, str]:
    """
    Validate configuration is complete and usable.
    Returns (is_valid, error_message).
    """
    if config is None:
        config = load_config()

    mode = config.get("obsidian", {}).get("export_mode", "link")
    if mode not in ("link", "copy"):
        return False, f"Invalid export_mode: {mode}. Must be 'link' or 'copy'"

    try:
        vault = vault_config_from_dict(config)
    except ValidationError as e:
        return False, f"Invalid obsidian settings: {e.errors()[0]['msg']}"

    if not vault.enabled:
        # Nothing else to check until export is switched on
        return True, ""

    return validate_vault_config(vault)


if __name__ == "__main__":
    # Show current config when run directly
    config = load_config()
    print("Current configuration:")
    print(json.dumps(config, indent=2))

    is_valid, error = validate_config(config)
    if is_valid:
        print("\nConfiguration is valid.")
    else:
        print(f"\nConfiguration error: {error}")
