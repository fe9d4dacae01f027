from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

AVALANCHE_FUJI_CHAIN_ID = 43113
BASE_SEPOLIA_CHAIN_ID = 84532
ETHEREUM_SEPOLIA_CHAIN_ID = 11155111


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    default_chain_id: int = AVALANCHE_FUJI_CHAIN_ID
    rpc_url_avalanche_fuji: str = "https://api.avax-test.network/ext/bc/C/rpc"
    rpc_url_base_sepolia: str = "https://sepolia.base.org"
    rpc_url_ethereum_sepolia: str = "https://rpc.sepolia.org"
    rpc_timeout_seconds: float = 20.0
    skill_price_contract_address: str = "0x5f6b3e64a1823ab48bf4acb8b3716ac7b77defb1"
    price_feed_avax_usd_fuji: str | None = "0x5498BB86BC934c8D34FDA08E81D444153d0D06aD"
    price_feed_eth_usd_sepolia: str | None = "0x694AA1769357215DE4FAC081bf1f309aDC325306"
    price_feed_eth_usd_base_sepolia: str | None = "0x4aDC67696bA383F43DD60A9e78F2C97Fbbfc7cb1"
    # Static approximations, no freshness check is applied to these.
    fallback_price_avax: float = 32.50
    fallback_price_eth: float = 3200.00
    fallback_price_default: float = 100.0
    market_cache_ttl_seconds: int = 300
    market_cache_max_entries: int = 50
    oracle_min_interval_seconds: int = 10
    price_cache_ttl_seconds: int = 60
    ai_enabled: bool = False
    llm_provider: str = "groq"
    groq_api_key: str | None = None
    groq_model: str = "llama-3.1-8b-instant"
    groq_api_base: str = "https://api.groq.com/openai/v1"
    openai_api_key: str | None = None
    openai_model: str = "gpt-5-mini"
    openai_api_base: str = "https://api.openai.com/v1"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 8192
    llm_timeout_seconds: float = 45.0
    api_rate_limit: int = 30
    api_rate_window_seconds: int = 60
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    log_level: str = "INFO"
    log_format: str = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

    @field_validator("skill_price_contract_address", mode="before")
    @classmethod
    def normalize_contract_address(cls, value: str) -> str:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        if isinstance(value, str):
            return value.strip().upper() or "INFO"
        return value

    def rpc_url_for(self, chain_id: int) -> str | None:
        return {
            AVALANCHE_FUJI_CHAIN_ID: self.rpc_url_avalanche_fuji,
            BASE_SEPOLIA_CHAIN_ID: self.rpc_url_base_sepolia,
            ETHEREUM_SEPOLIA_CHAIN_ID: self.rpc_url_ethereum_sepolia,
        }.get(chain_id)

    def price_feed_for(self, chain_id: int) -> str | None:
        return {
            AVALANCHE_FUJI_CHAIN_ID: self.price_feed_avax_usd_fuji,
            BASE_SEPOLIA_CHAIN_ID: self.price_feed_eth_usd_base_sepolia,
            ETHEREUM_SEPOLIA_CHAIN_ID: self.price_feed_eth_usd_sepolia,
        }.get(chain_id)

    def fallback_price_for(self, chain_id: int) -> float:
        return {
            AVALANCHE_FUJI_CHAIN_ID: self.fallback_price_avax,
            BASE_SEPOLIA_CHAIN_ID: self.fallback_price_eth,
            ETHEREUM_SEPOLIA_CHAIN_ID: self.fallback_price_eth,
        }.get(chain_id, self.fallback_price_default)


settings = Settings()
