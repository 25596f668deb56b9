"""
API 層

- raffle：參加者使用的入場與查詢 endpoints
- upkeep：keeper 輪詢與觸發關閉回合
- vrf：亂數 oracle 的回呼（以及開發鏈的 mock coordinator）
- accounts：得獎者餘額查詢
"""
