import os
import tomllib
from pathlib import Path

from skilltoken.errors import ConfigurationMissing

pkg_root = Path(__file__).parent
config_file = pkg_root / "config.toml"

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "MODULE_ADDRESS": ("ledger", "module_address"),
    "NODE_URL": ("ledger", "node_url"),
    "WALLET_WS_URL": ("wallet", "ws_url"),
}


def load_config(path: str | Path | None = None, env: dict[str, str] | None = None) -> dict:
    env = os.environ if env is None else env
    cfg = tomllib.loads(Path(path or config_file).read_text())
    for var, (section, key) in ENV_OVERRIDES.items():
        if env.get(var):
            cfg.setdefault(section, {})[key] = env[var]
    # Empty strings in the file mean "not configured".
    ledger = cfg.setdefault("ledger", {})
    ledger["module_address"] = ledger.get("module_address") or None
    wallet = cfg.setdefault("wallet", {})
    wallet["ws_url"] = wallet.get("ws_url") or None
    return cfg


def require_module_address(module_address: str | None) -> str:
    if not module_address:
        raise ConfigurationMissing()
    return module_address


cfg = load_config()
