"""
回合時鐘：記錄回合開始時間，計算經過的秒數

時間來源可以注入（測試時用假的時鐘）
"""
import time
from typing import Callable, Optional

from models import Raffle


class RoundClock:
    """回合時鐘（所有時間都是整數 UNIX 秒）"""

    def __init__(self, time_source: Optional[Callable[[], float]] = None):
        self._time_source = time_source or time.time

    def now(self) -> int:
        return int(self._time_source())

    def elapsed(self, raffle: Raffle) -> int:
        """
        回合已經過的秒數

        範例：
            last_timestamp=1000, now=1031 -> 31
        """
        return self.now() - raffle.last_timestamp

    def restart(self, raffle: Raffle) -> int:
        """
        重設回合開始時間為現在

        只有 RoundCoordinator 在派彩時會呼叫
        """
        raffle.last_timestamp = self.now()
        return raffle.last_timestamp
