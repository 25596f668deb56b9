"""
設定層

集中管理所有可調參數：
- Settings：從環境變數 / .env 讀取
- NETWORK_CONFIG：各鏈的 VRF 預設參數（以 chain id 為 key）
- DEVELOPMENT_CHAINS：本地開發鏈，使用 MockVRFCoordinator
"""
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from services.units import parse_ether


NETWORK_CONFIG = {
    4: {
        "name": "rinkeby",
        "vrf_coordinator_address": "0x6168499c0cFfCaCD319c818142124B7A15E857ab",
        # 30 gwei key hash
        "key_hash": "0xd89b2bf150e3b9e13446986e571fb9cab24b13cea0a43ea20a6049a85cc807cc",
        "subscription_id": 7928,
        "callback_gas_limit": 500000,
        "request_confirmations": 3,
    },
    31337: {
        "name": "hardhat",
        # mock 不檢查 key hash
        "key_hash": "0xd89b2bf150e3b9e13446986e571fb9cab24b13cea0a43ea20a6049a85cc807cc",
        "callback_gas_limit": 500000,
        "request_confirmations": 1,
    },
}

DEVELOPMENT_CHAINS = ["hardhat", "localhost"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    database_url: str = "sqlite:///./raffle.db"
    log_level: str = "INFO"

    # Raffle 參數（只在第一次 bootstrap 時寫入資料庫）
    chain_id: int = 31337
    entrance_fee: int = parse_ether("0.01")
    lottery_interval: int = 30

    # VRF 參數（未設定則使用 NETWORK_CONFIG 的預設值）
    key_hash: Optional[str] = None
    subscription_id: Optional[int] = None
    callback_gas_limit: Optional[int] = None
    request_confirmations: Optional[int] = None
    num_words: int = 1
    vrf_coordinator_url: Optional[str] = None
    vrf_subscription_fund: int = parse_ether("10")
    vrf_consumer_id: str = "raffle-keeper"
    # coordinator 呼叫 /api/vrf/fulfill 時帶在 X-VRF-Callback-Token header
    vrf_callback_secret: Optional[str] = None


@lru_cache()
def get_settings():
    return Settings()


@dataclass(frozen=True)
class OracleParams:
    """送給 VRF coordinator 的請求參數"""
    network_name: str
    key_hash: str
    subscription_id: Optional[int]
    callback_gas_limit: int
    request_confirmations: int
    num_words: int
    consumer: str = "raffle-keeper"

    @property
    def is_development(self) -> bool:
        return self.network_name in DEVELOPMENT_CHAINS


def resolve_oracle_params(settings: Settings) -> OracleParams:
    """
    合併 Settings 與 NETWORK_CONFIG

    規則：
    - Settings 有明確設定的欄位優先
    - 其餘使用 chain id 對應的網路預設值

    異常：
        ValueError: chain id 不在 NETWORK_CONFIG 且 key_hash 未設定
    """
    network = NETWORK_CONFIG.get(settings.chain_id, {})
    key_hash = settings.key_hash or network.get("key_hash")
    if key_hash is None:
        raise ValueError(
            f"No key hash configured for chain {settings.chain_id}"
        )

    def pick(name, default):
        value = getattr(settings, name)
        if value is not None:
            return value
        return network.get(name, default)

    return OracleParams(
        network_name=network.get("name", f"chain-{settings.chain_id}"),
        key_hash=key_hash,
        subscription_id=pick("subscription_id", None),
        callback_gas_limit=pick("callback_gas_limit", 500000),
        request_confirmations=pick("request_confirmations", 1),
        num_words=settings.num_words,
        consumer=settings.vrf_consumer_id,
    )
