# tesorito/config.py
from __future__ import annotations
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from .paths import CONFIG_FILE

log = logging.getLogger("tesorito.config")

STOCK_POLICIES = ("strict", "permissive")


@dataclass
class DatabaseConfig:
    url: str = "sqlite:///tesorito.db"
    echo: bool = False


@dataclass
class InventoryConfig:
    stock_policy: str = "strict"  # "strict" | "permissive"
    deduct_on_complete: bool = True
    stock_precision: int = 4


@dataclass
class OrdersConfig:
    tax_rate: float = 0.0
    loyalty_point_value_cents: int = 1000  # 1 punto ogni 10.00
    order_number_width: int = 3


@dataclass
class KitchenConfig:
    poll_seconds: int = 5
    overdue_minutes: int = 15


@dataclass
class AuthConfig:
    bootstrap_admin_key: Optional[str] = None


@dataclass
class AppConfig:
    # default_factory per oggetti mutabili
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    inventory: InventoryConfig = field(default_factory=InventoryConfig)
    orders: OrdersConfig = field(default_factory=OrdersConfig)
    kitchen: KitchenConfig = field(default_factory=KitchenConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    log_level: str = "INFO"


def _merge(dst: dict, src: dict) -> dict:
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            dst[k] = _merge(dst[k], v)
        else:
            dst[k] = v
    return dst


def _defaults() -> dict:
    return {
        "database": {"url": "sqlite:///tesorito.db", "echo": False},
        "inventory": {"stock_policy": "strict", "deduct_on_complete": True, "stock_precision": 4},
        "orders": {"tax_rate": 0.0, "loyalty_point_value_cents": 1000, "order_number_width": 3},
        "kitchen": {"poll_seconds": 5, "overdue_minutes": 15},
        "auth": {"bootstrap_admin_key": None},
        "log_level": "INFO",
    }


def _check_sections(data: dict) -> dict:
    """Le sezioni del file devono essere oggetti: altrimenti si torna ai default di quella sezione."""
    defaults = _defaults()
    for name, default in defaults.items():
        if isinstance(default, dict) and not isinstance(data.get(name), dict):
            log.warning("Config section %r must be an object, using defaults", name)
            data[name] = default
    return data


def _env_overrides(data: dict) -> dict:
    if os.getenv("TESORITO_DB_URL"):
        data["database"]["url"] = os.environ["TESORITO_DB_URL"]
    if os.getenv("TESORITO_STOCK_POLICY"):
        data["inventory"]["stock_policy"] = os.environ["TESORITO_STOCK_POLICY"].strip().lower()
    if os.getenv("TESORITO_TAX_RATE"):
        data["orders"]["tax_rate"] = os.environ["TESORITO_TAX_RATE"]
    if os.getenv("TESORITO_LOG_LEVEL"):
        data["log_level"] = os.environ["TESORITO_LOG_LEVEL"]
    return data


def _value(data: dict, section: str, key: str, convert: Callable[[Any], Any]) -> Any:
    """Un campo alla volta: un valore sbagliato torna al suo default, il resto resta."""
    default = _defaults()[section][key]
    raw = data[section].get(key, default)
    try:
        return convert(raw)
    except (TypeError, ValueError) as e:
        log.warning("Invalid config %s.%s=%r, using %r: %s", section, key, raw, default, e)
        return default


def _text(v) -> str:
    if not isinstance(v, str) or not v.strip():
        raise ValueError("must be a non-empty string")
    return v.strip()


def _policy(v) -> str:
    policy = str(v).strip().lower()
    if policy not in STOCK_POLICIES:
        raise ValueError(f"must be one of {STOCK_POLICIES}")
    return policy


def _non_negative_float(v) -> float:
    f = float(v)
    if f < 0:
        raise ValueError("must be >= 0")
    return f


def _positive_int(v) -> int:
    n = int(v)
    if n <= 0:
        raise ValueError("must be > 0")
    return n


def _flag(v) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes", "on")
    return bool(v)


def _build(data: dict) -> AppConfig:
    data = _check_sections(data)
    return AppConfig(
        database=DatabaseConfig(
            url=_value(data, "database", "url", _text),
            echo=_value(data, "database", "echo", _flag),
        ),
        inventory=InventoryConfig(
            stock_policy=_value(data, "inventory", "stock_policy", _policy),
            deduct_on_complete=_value(data, "inventory", "deduct_on_complete", _flag),
            stock_precision=_value(data, "inventory", "stock_precision", _positive_int),
        ),
        orders=OrdersConfig(
            tax_rate=_value(data, "orders", "tax_rate", _non_negative_float),
            loyalty_point_value_cents=_value(data, "orders", "loyalty_point_value_cents", _positive_int),
            order_number_width=_value(data, "orders", "order_number_width", _positive_int),
        ),
        kitchen=KitchenConfig(
            poll_seconds=_value(data, "kitchen", "poll_seconds", _positive_int),
            overdue_minutes=_value(data, "kitchen", "overdue_minutes", _positive_int),
        ),
        auth=AuthConfig(bootstrap_admin_key=data["auth"].get("bootstrap_admin_key") or None),
        log_level=str(data.get("log_level") or "INFO").upper(),
    )


def load_config(path: Optional[Path] = None) -> AppConfig:
    if path is None:
        path = Path(os.getenv("TESORITO_CONFIG", str(CONFIG_FILE)))

    data = _defaults()
    if path.exists():
        try:
            file_data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            log.warning("Config file %s unreadable, using defaults: %s", path, e)
            file_data = None
        if isinstance(file_data, dict):
            data = _merge(data, file_data)
        elif file_data is not None:
            log.warning("Config file %s must contain a JSON object, using defaults", path)

    data = _env_overrides(_check_sections(data))
    return _build(data)


# istanza singleton caricata a import
CONFIG = load_config()


def get_config() -> AppConfig:
    """Dipendenza FastAPI: i test possono sostituirla con dependency_overrides."""
    return CONFIG
