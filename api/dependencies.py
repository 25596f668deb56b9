"""
FastAPI dependencies
"""
import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, Request

from core.round_coordinator import RoundCoordinator

logger = logging.getLogger(__name__)


def get_coordinator(request: Request) -> RoundCoordinator:
    """取得 app 啟動時建立的 RoundCoordinator"""
    return request.app.state.coordinator


def verify_oracle_callback(
    request: Request,
    x_vrf_callback_token: Optional[str] = Header(None)
) -> None:
    """
    確認 callback 來自設定好的 VRF coordinator

    coordinator 必須在 X-VRF-Callback-Token header 帶上 vrf_callback_secret；
    沒有帶或不相符一律 401，還沒設定 secret 則 503

    在 endpoint 本體之前執行，被拒絕的 callback 不會碰到任何狀態
    """
    secret = getattr(request.app.state, "vrf_callback_secret", None)
    if not secret:
        raise HTTPException(status_code=503, detail="Oracle callback secret is not configured")

    if x_vrf_callback_token is None or not hmac.compare_digest(
        x_vrf_callback_token.encode("utf-8"), secret.encode("utf-8")
    ):
        logger.warning(f"Rejected unauthenticated oracle callback from {request.client.host if request.client else 'unknown'}")
        raise HTTPException(status_code=401, detail="Invalid oracle callback token")
