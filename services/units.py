"""
單位換算：ether <-> wei

純計算邏輯，所有金額在系統內部一律使用 wei（int）
"""
from decimal import Decimal, InvalidOperation

WEI_PER_ETHER = 10 ** 18


def parse_ether(amount) -> int:
    """
    將 ether 數量轉成 wei

    範例：
        parse_ether("0.01") -> 10000000000000000

    異常：
        ValueError: 無法解析，或小數位超過 18 位
    """
    try:
        value = Decimal(str(amount)) * WEI_PER_ETHER
    except InvalidOperation:
        raise ValueError(f"Invalid ether amount: {amount!r}")

    if value != value.to_integral_value():
        raise ValueError(f"Ether amount has more than 18 decimals: {amount!r}")
    return int(value)


def format_ether(wei: int) -> str:
    """將 wei 轉成 ether 字串（去掉多餘的 0）"""
    value = Decimal(wei) / WEI_PER_ETHER
    text = format(value.normalize(), "f")
    return text
