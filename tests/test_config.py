import pytest

from skilltoken.config import config_file, load_config, require_module_address
from skilltoken.errors import ConfigurationMissing


def test_packaged_defaults_leave_module_unset():
    cfg = load_config(config_file, env={})
    assert cfg["ledger"]["module_address"] is None
    assert cfg["wallet"]["ws_url"] is None
    assert cfg["monitor"]["max_attempts"] == 10
    assert cfg["confirmation"]["retry_delay"] == 2.0


def test_env_overrides(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('[ledger]\nnode_url = "http://file"\nmodule_address = ""\n')
    cfg = load_config(path, env={"MODULE_ADDRESS": "0xcafe", "NODE_URL": "http://env", "WALLET_WS_URL": "ws://w"})
    assert cfg["ledger"]["module_address"] == "0xcafe"
    assert cfg["ledger"]["node_url"] == "http://env"
    assert cfg["wallet"]["ws_url"] == "ws://w"


@pytest.mark.parametrize("value", [None, ""])
def test_require_module_address(value):
    with pytest.raises(ConfigurationMissing):
        require_module_address(value)
    assert require_module_address("0x1") == "0x1"
