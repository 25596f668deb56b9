"""
亂數 Oracle 服務

Raffle 只依賴 oracle 的 request / fulfill 協定，不實作 VRF 的密碼學：
- request_random_words(...) -> request_id
- oracle 稍後（非同步）呼叫 fulfill(request_id, random_words)

實作：
- MockVRFCoordinator：本地開發鏈使用，行為對齊 VRFCoordinatorV2Mock
- RemoteVRFCoordinator：把請求送到外部 coordinator 服務（HTTP）
"""
import hashlib
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import requests

from core.exceptions import (
    InsufficientBalance,
    InvalidConsumer,
    InvalidSubscription,
    NonexistentRequest,
    OracleError,
)
from services.units import parse_ether

logger = logging.getLogger(__name__)

# 對齊 VRFCoordinatorV2Mock 的部署參數
BASE_FEE = parse_ether("0.25")  # premium fee（LINK）
GAS_PRICE_LINK = parse_ether("0.000000001")  # 每單位 gas 的 LINK 價格

FulfillCallback = Callable[[int, List[int]], object]


@dataclass
class Subscription:
    subscription_id: int
    balance: int = 0
    consumers: List[str] = field(default_factory=list)


@dataclass
class RandomWordsRequest:
    request_id: int
    subscription_id: int
    key_hash: str
    request_confirmations: int
    callback_gas_limit: int
    num_words: int


class MockVRFCoordinator:
    """
    本地 VRF coordinator

    - request id 從 1 開始遞增
    - 亂數由 request id 決定（sha256），方便重現
    - fulfill 時才向 subscription 收費：BASE_FEE + GAS_PRICE_LINK * callback_gas_limit
    - 狀態只存在記憶體（開發用，重啟後消失）
    """

    def __init__(self, base_fee: int = BASE_FEE, gas_price_link: int = GAS_PRICE_LINK):
        self.base_fee = base_fee
        self.gas_price_link = gas_price_link
        self._subscriptions: Dict[int, Subscription] = {}
        self._requests: Dict[int, RandomWordsRequest] = {}
        self._current_sub_id = 0
        self._nonce = 0
        self._lock = threading.Lock()

    # =============== Subscription ===============

    def create_subscription(self) -> int:
        with self._lock:
            self._current_sub_id += 1
            sub_id = self._current_sub_id
            self._subscriptions[sub_id] = Subscription(subscription_id=sub_id)
        logger.info(f"Created VRF subscription {sub_id}")
        return sub_id

    def fund_subscription(self, subscription_id: int, amount: int) -> int:
        with self._lock:
            subscription = self._get_subscription(subscription_id)
            subscription.balance += amount
            balance = subscription.balance
        logger.info(f"Funded VRF subscription {subscription_id} with {amount}, balance {balance}")
        return balance

    def add_consumer(self, subscription_id: int, consumer: str) -> None:
        with self._lock:
            subscription = self._get_subscription(subscription_id)
            if consumer not in subscription.consumers:
                subscription.consumers.append(consumer)
        logger.info(f"Added consumer {consumer} to VRF subscription {subscription_id}")

    def get_subscription(self, subscription_id: int) -> Subscription:
        with self._lock:
            return self._get_subscription(subscription_id)

    def _get_subscription(self, subscription_id) -> Subscription:
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None:
            raise InvalidSubscription(subscription_id)
        return subscription

    # =============== Request / Fulfill ===============

    def request_random_words(
        self,
        key_hash: str,
        subscription_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
        consumer: str
    ) -> int:
        """
        登記一筆亂數請求

        異常：
            InvalidSubscription: subscription 不存在
            InvalidConsumer: consumer 沒有透過 add_consumer 加入 subscription
            InsufficientBalance: 餘額連 base fee 都付不起
        """
        with self._lock:
            subscription = self._get_subscription(subscription_id)
            if consumer not in subscription.consumers:
                raise InvalidConsumer(subscription_id, consumer)
            if subscription.balance < self.base_fee:
                raise InsufficientBalance(subscription_id, subscription.balance, self.base_fee)

            self._nonce += 1
            request_id = self._nonce
            self._requests[request_id] = RandomWordsRequest(
                request_id=request_id,
                subscription_id=subscription_id,
                key_hash=key_hash,
                request_confirmations=request_confirmations,
                callback_gas_limit=callback_gas_limit,
                num_words=num_words,
            )

        logger.info(f"Random words requested: request {request_id} (sub={subscription_id}, words={num_words})")
        return request_id

    def pending_request_ids(self) -> List[int]:
        with self._lock:
            return sorted(self._requests)

    @staticmethod
    def derive_random_words(request_id: int, num_words: int) -> List[int]:
        """每個 word = sha256("{request_id}:{i}") 轉成整數"""
        words = []
        for i in range(num_words):
            digest = hashlib.sha256(f"{request_id}:{i}".encode("utf-8")).hexdigest()
            words.append(int(digest, 16))
        return words

    def fulfill_random_words(
        self,
        request_id: int,
        consumer: FulfillCallback,
        words: Optional[List[int]] = None
    ) -> List[int]:
        """
        產生亂數並回呼 consumer

        參數：
            request_id: 要完成的請求
            consumer: callback(request_id, random_words)
            words: 指定亂數（測試用，對應 fulfillRandomWordsWithOverride）

        返回：
            送出的 random words

        異常：
            NonexistentRequest: request 不存在（從未請求或已完成）
            InsufficientBalance: subscription 餘額不足以支付這次 fulfill

        注意：
            consumer 拋出異常時請求會保留，之後可以再送一次
        """
        with self._lock:
            request = self._requests.get(request_id)
            if request is None:
                raise NonexistentRequest(request_id)
            subscription = self._get_subscription(request.subscription_id)
            payment = self.base_fee + self.gas_price_link * request.callback_gas_limit
            if subscription.balance < payment:
                raise InsufficientBalance(request.subscription_id, subscription.balance, payment)

        if words is None:
            words = self.derive_random_words(request_id, request.num_words)
        elif len(words) != request.num_words:
            raise OracleError(
                f"Expected {request.num_words} words for request {request_id}, got {len(words)}"
            )

        consumer(request_id, words)

        with self._lock:
            if self._requests.pop(request_id, None) is not None:
                subscription.balance -= payment

        logger.info(f"Random words fulfilled: request {request_id}, payment {payment}")
        return words


class RemoteVRFCoordinator:
    """
    外部 coordinator 的 HTTP client

    POST {base_url}/requests
        body: keyHash, subId, minimumRequestConfirmations, callbackGasLimit, numWords, consumer
        回應：{"requestId": <int>}

    亂數會由 coordinator 非同步送到 POST /api/vrf/fulfill
    """

    def __init__(self, base_url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def request_random_words(
        self,
        key_hash: str,
        subscription_id: int,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
        consumer: str
    ) -> int:
        payload = {
            "keyHash": key_hash,
            "subId": subscription_id,
            "minimumRequestConfirmations": request_confirmations,
            "callbackGasLimit": callback_gas_limit,
            "numWords": num_words,
            "consumer": consumer,
        }
        try:
            response = self.session.post(
                f"{self.base_url}/requests", json=payload, timeout=self.timeout
            )
            response.raise_for_status()
            request_id = int(response.json()["requestId"])
        except requests.RequestException as e:
            logger.error(f"VRF coordinator request failed: {e}")
            raise OracleError(f"VRF coordinator request failed: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise OracleError(f"Malformed VRF coordinator response: {e}") from e

        logger.info(f"Random words requested from {self.base_url}: request {request_id}")
        return request_id
