import logging
import yaml

from typing import Any, Optional, Tuple, Type
from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
from utils.content_utils import DEFAULT_GATEWAY_URL
from utils.general_utils import standardize_address
from utils.ledger_source import MarketContext


def normalize_address_setting(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    # YAML reads an unquoted 0x... literal as an integer
    if isinstance(value, int):
        return "0x" + format(value, "040x")
    return standardize_address(str(value))


class ReconstructorConfig(BaseModel):
    type: str


class MarketplaceReconstructorConfig(ReconstructorConfig):
    collection_contract_address: Optional[str] = None
    marketplace_contract_address: Optional[str] = None
    from_block: int = 0

    @field_validator(
        "collection_contract_address", "marketplace_contract_address", mode="before"
    )
    @classmethod
    def normalize_address(cls, value: Any) -> Optional[str]:
        return normalize_address_setting(value)


class ServerConfig(BaseModel):
    reconstructor_config: MarketplaceReconstructorConfig
    ledger_rpc_url: str
    ledger_request_timeout_in_secs: int = 30
    content_gateway_url: str = DEFAULT_GATEWAY_URL
    content_request_timeout_in_secs: int = 10
    # Bounded retries around a single metadata document fetch
    content_max_retries: int = 2
    # Size of the pool used for read-only fan-out (metadata fetches, independent queries)
    num_concurrent_fetch_tasks: int = 10

    def get_market_context(
        self, owner_address: Optional[str] = None
    ) -> Optional[MarketContext]:
        reconstructor_config = self.reconstructor_config
        if not reconstructor_config.collection_contract_address:
            logging.warning(
                "[Config] No collection contract address configured",
                extra={"reconstructor_name": reconstructor_config.type},
            )
            return None

        return MarketContext(
            collection_address=reconstructor_config.collection_contract_address,
            marketplace_address=reconstructor_config.marketplace_contract_address,
            owner_address=owner_address,
            from_block=reconstructor_config.from_block,
        )


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_nested_delimiter="__")

    health_check_port: int = 8084
    server_config: ServerConfig

    # Environment variables take precedence over config file settings
    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return env_settings, init_settings, file_secret_settings

    @classmethod
    def from_yaml_file(cls, path: str):
        with open(path, "r") as file:
            config = yaml.safe_load(file)

        return cls(**config)
