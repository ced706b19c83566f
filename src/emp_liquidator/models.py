'''
Read-only snapshots of on-chain EMP state, as served by the state cache.
'''
from dataclasses import dataclass
from enum import IntEnum


class LiquidationStatus(IntEnum):
    UNINITIALIZED = 0
    PRE_DISPUTE = 1
    PENDING_DISPUTE = 2
    DISPUTE_SUCCEEDED = 3
    DISPUTE_FAILED = 4


@dataclass(frozen=True)
class Position:
    sponsor: str
    num_tokens: int
    amount_collateral: int
    withdrawal_request_amount: int = 0
    withdrawal_request_pass_timestamp: int = 0

    @property
    def has_pending_withdrawal(self):
        return self.withdrawal_request_pass_timestamp > 0


@dataclass(frozen=True)
class Liquidation:
    id: int
    sponsor: str
    liquidator: str
    status: LiquidationStatus
    liquidation_time: int
    num_tokens: int
    liquidated_collateral: int
    locked_collateral: int
    disputer: str = None
