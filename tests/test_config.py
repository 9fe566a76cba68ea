import pytest

from fakes import COLLECTION, MARKETPLACE, WALLET
from utils.config import Config

CONFIG_YAML = """
health_check_port: 9000
server_config:
  ledger_rpc_url: "http://localhost:8545"
  content_gateway_url: "https://gateway.test/ipfs/"
  num_concurrent_fetch_tasks: 4
  reconstructor_config:
    type: "marketplace_reconstructor"
    collection_contract_address: "0x00000000000000000000000000000000000000CC"
    marketplace_contract_address: 0x00000000000000000000000000000000000000aa
    from_block: 100
"""


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)
    return str(path)


def test_load_config_from_yaml(config_path):
    config = Config.from_yaml_file(config_path)

    assert config.health_check_port == 9000
    server_config = config.server_config
    assert server_config.ledger_request_timeout_in_secs == 30
    assert server_config.num_concurrent_fetch_tasks == 4
    reconstructor_config = server_config.reconstructor_config
    assert reconstructor_config.collection_contract_address == COLLECTION
    # Unquoted hex literal is read by YAML as an integer
    assert reconstructor_config.marketplace_contract_address == MARKETPLACE
    assert reconstructor_config.from_block == 100


def test_environment_overrides_config_file(config_path, monkeypatch):
    monkeypatch.setenv("HEALTH_CHECK_PORT", "9100")

    config = Config.from_yaml_file(config_path)

    assert config.health_check_port == 9100


def test_market_context_from_config(config_path):
    config = Config.from_yaml_file(config_path)

    context = config.server_config.get_market_context(WALLET.upper().replace("0X", "0x"))

    assert context.collection_address == COLLECTION
    assert context.marketplace_address == MARKETPLACE
    assert context.owner_address == WALLET
    assert context.from_block == 100


def test_market_context_requires_collection():
    config = Config(
        server_config={
            "ledger_rpc_url": "http://localhost:8545",
            "reconstructor_config": {"type": "marketplace_reconstructor"},
        }
    )

    assert config.server_config.get_market_context() is None
