"""wabot configuration — loads from wabot.yaml + env."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Annotated, Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

BUILTIN_COMMANDS_DIR = str(Path(__file__).parent / "commands" / "builtin")


def _load_yaml_config() -> dict[str, Any]:
    """Load wabot.yaml from WABOT_CONFIG_PATH or default locations."""
    config_path = os.getenv("WABOT_CONFIG_PATH")
    search_paths = (
        [Path(config_path)]
        if config_path
        else [
            Path("wabot.yaml"),
            Path("data/wabot.yaml"),
        ]
    )
    for path in search_paths:
        if path.exists():
            with open(path) as f:
                return yaml.safe_load(f) or {}
    return {}


def _parse_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                return [str(item).strip() for item in parsed if str(item).strip()]
        return [item.strip() for item in text.split(",") if item.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [str(value).strip()] if str(value).strip() else []


class AutoReplyRule(BaseModel):
    """One canned reply, fired when any trigger substring appears in the text."""

    triggers: list[str]
    response: str

    @field_validator("triggers", mode="before")
    @classmethod
    def _parse_triggers(cls, value: Any) -> list[str]:
        return [t.lower() for t in _parse_str_list(value)]


def _default_auto_replies() -> list[AutoReplyRule]:
    return [
        AutoReplyRule(
            triggers=["hello", "hi", "hey", "halo"],
            response="👋 Hello! Welcome to the WhatsApp bot.\n\nType .help to see the available commands!",
        ),
        AutoReplyRule(
            triggers=["good morning", "selamat pagi"],
            response="🌅 Good morning! Have a great day!",
        ),
        AutoReplyRule(
            triggers=["good night", "selamat malam"],
            response="🌙 Good night! Sleep well!",
        ),
        AutoReplyRule(
            triggers=["thank you", "thanks", "terima kasih"],
            response="😊 You're welcome! Happy to help.",
        ),
    ]


class BridgeConfig(BaseSettings):
    """Connection to the Baileys bridge process."""

    url: str = Field(default="ws://127.0.0.1:3001", description="Bridge WebSocket URL")
    token: str = Field(default="", description="Shared secret sent with the auth request")
    connect_timeout_s: float = Field(default=10.0, gt=0)
    request_timeout_s: float = Field(default=60.0, gt=0)
    max_frame_bytes: int = Field(default=64 * 1024 * 1024, gt=0)

    model_config = SettingsConfigDict(env_prefix="WABOT_BRIDGE_")


class ReconnectConfig(BaseSettings):
    """Reconnect and backoff policy."""

    max_attempts: int = Field(default=5, ge=1, description="Conflict reconnects before giving up")
    conflict_base_delay_s: float = Field(default=30.0, gt=0)
    conflict_max_delay_s: float = Field(default=300.0, gt=0)
    retry_delay_s: float = Field(default=3.0, ge=0)
    conflict_reset_after_s: float = Field(default=300.0, gt=0)
    start_retry_delay_s: float = Field(default=5.0, ge=0)
    restart_delay_s: float = Field(default=1.0, ge=0)

    model_config = SettingsConfigDict(env_prefix="WABOT_RECONNECT_")


class RouterConfig(BaseSettings):
    """Inbound message routing."""

    prefix: str = Field(default=".", min_length=1, max_length=1)
    debounce_ms: int = Field(default=500, ge=0)
    stale_after_s: float = Field(default=30.0, gt=0)
    command_timeout_s: float = Field(
        default=120.0,
        ge=0,
        description="Per-command execution limit in seconds. 0 = no limit",
    )
    auto_replies: list[AutoReplyRule] = Field(default_factory=_default_auto_replies)

    model_config = SettingsConfigDict(env_prefix="WABOT_ROUTER_")


class RenderConfig(BaseSettings):
    """Sticker rendering tools."""

    ffmpeg_bin: str = "ffmpeg"
    temp_dir: str = Field(default="temp")
    sticker_size: int = Field(default=512, ge=64, le=1024)
    font_size: int = Field(default=60, ge=8, le=200)
    font_file: str | None = None
    text_color: str = "#ffffff"
    stroke_color: str = "#000000"
    browser_timeout_ms: int = Field(default=30_000, gt=0)
    subprocess_timeout_s: float = Field(default=60.0, gt=0)
    max_video_seconds: int = Field(default=10, gt=0)

    model_config = SettingsConfigDict(env_prefix="WABOT_RENDER_")


class BotConfig(BaseSettings):
    """Root wabot configuration."""

    bot_name: str = "WhatsApp Bot"

    # Paths
    session_dir: str = Field(default="session", description="Where bridge credentials are kept")
    commands_dir: str = Field(default=BUILTIN_COMMANDS_DIR)

    admin_ids: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Sender ids (or phone-number fragments) allowed to run admin commands",
    )

    # Sub-configs
    bridge: BridgeConfig = Field(default_factory=BridgeConfig)
    reconnect: ReconnectConfig = Field(default_factory=ReconnectConfig)
    router: RouterConfig = Field(default_factory=RouterConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="console")

    model_config = SettingsConfigDict(
        env_prefix="WABOT_",
        env_nested_delimiter="__",
    )

    @field_validator("admin_ids", mode="before")
    @classmethod
    def _parse_admin_ids(cls, value: Any) -> list[str]:
        return _parse_str_list(value)

    def is_admin(self, sender_id: str) -> bool:
        return any(admin and admin in sender_id for admin in self.admin_ids)

    @classmethod
    def load(cls) -> BotConfig:
        """Load config from YAML + env vars (env takes precedence)."""
        yaml_cfg = _load_yaml_config()

        bridge_data = yaml_cfg.pop("bridge", {})
        reconnect_data = yaml_cfg.pop("reconnect", {})
        router_data = yaml_cfg.pop("router", {})
        render_data = yaml_cfg.pop("render", {})

        # Only pass YAML sub-configs if they have data;
        # otherwise let pydantic-settings pick up env vars
        kwargs: dict[str, Any] = {**yaml_cfg}
        if bridge_data:
            kwargs["bridge"] = BridgeConfig(**bridge_data)
        if reconnect_data:
            kwargs["reconnect"] = ReconnectConfig(**reconnect_data)
        if router_data:
            kwargs["router"] = RouterConfig(**router_data)
        if render_data:
            kwargs["render"] = RenderConfig(**render_data)

        return cls(**kwargs)


# Singleton
_config: BotConfig | None = None


def get_config() -> BotConfig:
    """Get or create the global config."""
    global _config
    if _config is None:
        _config = BotConfig.load()
    return _config
