"""Runtime configuration for MultiSend."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from multisend.network import RetryConfig, TimeoutConfig

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECIPIENTS = 200
DEFAULT_RECEIPT_TIMEOUT = 120.0
DEFAULT_POLL_INTERVAL = 2.0

_TRUE_VALUES = ("1", "true", "yes")


def default_config_dir() -> Path:
    env_dir = os.getenv("MULTISEND_DIR")
    if env_dir:
        return Path(env_dir)
    return Path.home() / ".config" / "multisend"


@dataclass
class MultiSendConfig:
    max_recipients: int = DEFAULT_MAX_RECIPIENTS
    refund_excess_value: bool = True
    explorer_base_url: str = ""
    rpc_url: str = ""
    contract_address: str = ""
    relay_url: str = ""
    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    timeout_config: TimeoutConfig = field(default_factory=TimeoutConfig)
    retry_config: RetryConfig = field(default_factory=RetryConfig)

    def __post_init__(self):
        if self.max_recipients < 1:
            raise ValueError("max_recipients must be at least 1")
        self.explorer_base_url = self.explorer_base_url.rstrip("/")

    @classmethod
    def from_environment(cls) -> "MultiSendConfig":
        config = cls()

        max_recipients = os.getenv("MULTISEND_MAX_RECIPIENTS")
        if max_recipients:
            try:
                config.max_recipients = max(1, int(max_recipients))
            except ValueError:
                logger.warning(
                    "Ignoring invalid MULTISEND_MAX_RECIPIENTS: %s", max_recipients
                )

        refund = os.getenv("MULTISEND_REFUND_EXCESS")
        if refund:
            config.refund_excess_value = refund.lower() in _TRUE_VALUES

        receipt_timeout = os.getenv("MULTISEND_RECEIPT_TIMEOUT")
        if receipt_timeout:
            try:
                config.receipt_timeout = float(receipt_timeout)
            except ValueError:
                logger.warning(
                    "Ignoring invalid MULTISEND_RECEIPT_TIMEOUT: %s", receipt_timeout
                )

        config.explorer_base_url = os.getenv("MULTISEND_EXPLORER_URL", "").rstrip("/")
        config.rpc_url = os.getenv("MULTISEND_RPC_URL", "")
        config.contract_address = os.getenv("MULTISEND_CONTRACT", "")
        config.relay_url = os.getenv("MULTISEND_RELAY_URL", "")
        return config

    @classmethod
    def load(cls, path: Path | None = None) -> "MultiSendConfig":
        if path is None:
            path = default_config_dir() / "config.json"
        if not path.exists():
            return cls()

        with open(path, "r") as f:
            data = json.load(f)

        timeout_cfg = data.get("timeout", {})
        retry_cfg = data.get("retry", {})
        return cls(
            max_recipients=int(data.get("max_recipients", DEFAULT_MAX_RECIPIENTS)),
            refund_excess_value=bool(data.get("refund_excess_value", True)),
            explorer_base_url=data.get("explorer_base_url", ""),
            rpc_url=data.get("rpc_url", ""),
            contract_address=data.get("contract_address", ""),
            relay_url=data.get("relay_url", ""),
            receipt_timeout=float(
                data.get("receipt_timeout", DEFAULT_RECEIPT_TIMEOUT)
            ),
            poll_interval=float(data.get("poll_interval", DEFAULT_POLL_INTERVAL)),
            timeout_config=TimeoutConfig(
                connect_timeout=timeout_cfg.get("connect_timeout", 5.0),
                read_timeout=timeout_cfg.get("read_timeout", 15.0),
            ),
            retry_config=RetryConfig(
                max_retries=retry_cfg.get("max_retries", 3),
                base_delay=retry_cfg.get("base_delay", 1.0),
                max_delay=retry_cfg.get("max_delay", 30.0),
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_recipients": self.max_recipients,
            "refund_excess_value": self.refund_excess_value,
            "explorer_base_url": self.explorer_base_url,
            "rpc_url": self.rpc_url,
            "contract_address": self.contract_address,
            "relay_url": self.relay_url,
            "receipt_timeout": self.receipt_timeout,
            "poll_interval": self.poll_interval,
            "timeout": {
                "connect_timeout": self.timeout_config.connect_timeout,
                "read_timeout": self.timeout_config.read_timeout,
            },
            "retry": {
                "max_retries": self.retry_config.max_retries,
                "base_delay": self.retry_config.base_delay,
                "max_delay": self.retry_config.max_delay,
            },
        }

    def save(self, path: Path | None = None) -> Path:
        if path is None:
            path = default_config_dir() / "config.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info("Saved configuration to %s", path)
        return path
