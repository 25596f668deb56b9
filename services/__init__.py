"""
服務層

這個 package 包含純計算邏輯與外部服務的 client，不負責狀態轉換：
- UpkeepService：回合是否可以關閉
- WinnerService：亂數對應到得獎者
- RoundClock：回合時間
- PayoutService：派彩
- OracleService：VRF coordinator client 與本地 mock
- HistoryService：已完成回合
"""
