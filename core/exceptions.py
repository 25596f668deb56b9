"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理

所有異常都代表「拒絕這次呼叫」：搭配 @transactional，被拒絕的呼叫不會留下任何修改
"""


class RaffleException(Exception):
    """所有 Raffle 異常的基類"""
    pass


class RaffleNotInitialized(RaffleException):
    """Raffle 記錄不存在（尚未 bootstrap）"""
    def __init__(self):
        super().__init__("Raffle has not been initialized")


# ============ Entry 相關異常 ============

class InsufficientValue(RaffleException):
    """入場金額低於 entrance fee"""
    def __init__(self, value, entrance_fee):
        self.value = value
        self.entrance_fee = entrance_fee
        super().__init__(
            f"Value {value} is lower than the entrance fee {entrance_fee}"
        )


class RoundNotOpen(RaffleException):
    """回合不是 OPEN（正在等待亂數），不接受新的參加者"""
    pass


class PlayerIndexOutOfRange(RaffleException):
    """查詢的參加者 index 不存在"""
    def __init__(self, index, count):
        self.index = index
        self.count = count
        super().__init__(f"Player index {index} out of range (players: {count})")


# ============ Upkeep / 亂數相關異常 ============

class UpkeepNotNeeded(RaffleException):
    """upkeep 條件不成立，不能關閉回合"""
    def __init__(self, balance, num_players, state, reason=None):
        self.balance = balance
        self.num_players = num_players
        self.state = state
        self.reason = reason
        super().__init__(
            f"Upkeep not needed (balance={balance}, players={num_players}, "
            f"state={getattr(state, 'value', state)}, reason={reason})"
        )


class UnknownRequest(RaffleException):
    """亂數回應的 request id 不是目前唯一進行中的請求（未請求過或已被消耗）"""
    def __init__(self, request_id):
        self.request_id = request_id
        super().__init__(f"Unknown or already fulfilled request {request_id}")


# ============ Payout 相關異常 ============

class NoParticipants(RaffleException):
    """結算時沒有參加者（正常流程下不會發生）"""
    pass


class TransferFailed(RaffleException):
    """獎金無法轉給得獎者；回合維持 CALCULATING，需要人工處理"""
    def __init__(self, winner, amount, reason=None):
        self.winner = winner
        self.amount = amount
        self.reason = reason
        super().__init__(f"Transfer of {amount} wei to {winner} failed: {reason}")


# ============ 狀態轉換異常 ============

class InvalidStateTransition(RaffleException):
    """非法的狀態轉換"""
    pass


# ============ Oracle 相關異常 ============

class OracleError(RaffleException):
    """亂數 oracle 拒絕或無法處理請求"""
    pass


class InvalidSubscription(OracleError):
    """VRF subscription 不存在"""
    def __init__(self, subscription_id):
        self.subscription_id = subscription_id
        super().__init__(f"Invalid subscription {subscription_id}")


class InvalidConsumer(OracleError):
    """consumer 沒有加入 subscription"""
    def __init__(self, subscription_id, consumer):
        self.subscription_id = subscription_id
        self.consumer = consumer
        super().__init__(f"Consumer {consumer} is not added to subscription {subscription_id}")


class InsufficientBalance(OracleError):
    """VRF subscription 餘額不足"""
    def __init__(self, subscription_id, balance, required):
        self.subscription_id = subscription_id
        self.balance = balance
        self.required = required
        super().__init__(
            f"Subscription {subscription_id} balance {balance} is below {required}"
        )


class NonexistentRequest(OracleError):
    """coordinator 沒有這個 request id"""
    def __init__(self, request_id):
        self.request_id = request_id
        super().__init__(f"nonexistent request {request_id}")
