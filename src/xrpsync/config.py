import os
import tomllib
from pathlib import Path

import xrpsync.constants as C

pkg_root = Path(__file__).parent
config_file = pkg_root / "config.toml"


def load_config(path: Path | None = None) -> dict:
    """Read config.toml and apply environment overrides."""
    conf = tomllib.loads(Path(path or config_file).read_text())
    net = conf.setdefault("network", {})
    net["endpoint"] = os.getenv("XRPSYNC_ENDPOINT", net.get("endpoint", C.DEFAULT_ENDPOINT))
    net.setdefault("rpc_timeout", C.RPC_TIMEOUT)
    conf.setdefault("cache", {}).setdefault("server_info_ttl", C.SERVER_INFO_TTL)
    conf.setdefault("transaction", {}).setdefault("max_ledger_version_offset", C.MAX_LEDGER_VERSION_OFFSET)
    conf.setdefault("http", {}).setdefault("host", "0.0.0.0")
    conf["http"].setdefault("port", 8000)
    return conf


cfg = load_config()


def get_default_endpoint_config() -> str:
    return cfg["network"]["endpoint"]
