"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理 OPEN / CALCULATING 的轉換
- Coordinator：管理 Raffle 回合的生命週期
- Entry Ledger / Randomness Gateway：參加者序列與亂數請求
- Event Log：記錄所有對外通知
- Locks：並發控制工具
"""
