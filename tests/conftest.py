from types import SimpleNamespace

import pytest

from emp_liquidator.fixed_point import to_wei
from emp_liquidator.liquidator import Liquidator
from emp_liquidator.models import Liquidation, LiquidationStatus, Position

ACCOUNT = '0x1111111111111111111111111111111111111111'
OTHER = '0x2222222222222222222222222222222222222222'


class FakeMethod:
    '''
    Stand-in for a brownie ContractTx: `.call` simulates, calling the
    object sends. Behaviour is swapped per test via on_call / on_send.
    '''
    def __init__(self, name, calls, on_call, on_send):
        self.name = name
        self.calls = calls
        self.on_call = on_call
        self.on_send = on_send

    def call(self, *args):
        self.calls.append(('call', self.name, args))
        return self.on_call(*args)

    def __call__(self, *args):
        self.calls.append(('send', self.name, args))
        return self.on_send(*args)


def liquidation_receipt(*args):
    return SimpleNamespace(
        txid='0xliq',
        events={'LiquidationCreated': {
            'sponsor': args[0],
            'liquidator': ACCOUNT,
            'liquidationId': 0,
            'tokensOutstanding': args[3][0],
            'lockedCollateral': 10,
            'liquidatedCollateral': 10,
        }}
    )


def withdrawal_receipt(*args):
    return SimpleNamespace(
        txid='0xwd',
        events={'LiquidationWithdrawn': {
            'caller': ACCOUNT,
            'withdrawalAmount': 42,
            'liquidationStatus': 4,
        }}
    )


class FakeEmp:
    def __init__(self, collateral_requirement=to_wei('1.2')):
        self.calls = []
        self.cr_calls = 0
        self._collateral_requirement = collateral_requirement
        self.createLiquidation = FakeMethod(
            'createLiquidation', self.calls,
            on_call=lambda *args: None, on_send=liquidation_receipt)
        self.withdrawLiquidation = FakeMethod(
            'withdrawLiquidation', self.calls,
            on_call=lambda *args: (42,), on_send=withdrawal_receipt)

    def collateralRequirement(self):
        self.cr_calls += 1
        return (self._collateral_requirement,)

    def sent(self, name=None):
        return [c for c in self.calls
                if c[0] == 'send' and (name is None or c[1] == name)]

    def simulated(self, name=None):
        return [c for c in self.calls
                if c[0] == 'call' and (name is None or c[1] == name)]


class FakeEmpClient:
    def __init__(self, emp):
        self.emp = emp
        self.positions = []
        self.expired = []
        self.disputed = []
        self.update_count = 0
        self.scanned_prices = []
        self.times = iter(range(1000, 100000, 100))

    def update(self):
        self.update_count += 1

    def get_undercollateralized_positions(self, price):
        self.scanned_prices.append(price)
        return list(self.positions)

    def get_expired_liquidations(self):
        return list(self.expired)

    def get_disputed_liquidations(self):
        return list(self.disputed)

    def get_last_update_time(self):
        return next(self.times)


class FakeGasEstimator:
    def __init__(self, price=50 * 10 ** 9):
        self.price = price
        self.update_count = 0

    def update(self):
        self.update_count += 1

    def get_current_fast_price(self):
        return self.price


class FakePriceFeed:
    def __init__(self, price=to_wei('1')):
        self.price = price
        self.update_count = 0

    def update(self):
        self.update_count += 1

    def get_current_price(self):
        return self.price


class RecordingLogger:
    def __init__(self):
        self.records = []

    def _log(self, level, at, message, **context):
        self.records.append(SimpleNamespace(
            level=level, at=at, message=message, context=context))

    def debug(self, at, message, **context):
        self._log('debug', at, message, **context)

    def info(self, at, message, **context):
        self._log('info', at, message, **context)

    def warn(self, at, message, **context):
        self._log('warn', at, message, **context)

    def error(self, at, message, **context):
        self._log('error', at, message, **context)

    def levels(self):
        return [r.level for r in self.records]


def make_position(sponsor, num_tokens=to_wei('100'),
                  collateral=to_wei('110')):
    return Position(sponsor=sponsor, num_tokens=num_tokens,
                    amount_collateral=collateral)


def make_liquidation(liq_id, liquidator=ACCOUNT,
                     status=LiquidationStatus.PRE_DISPUTE, sponsor=OTHER):
    return Liquidation(
        id=liq_id, sponsor=sponsor, liquidator=liquidator, status=status,
        liquidation_time=0, num_tokens=to_wei('100'),
        liquidated_collateral=to_wei('110'), locked_collateral=to_wei('110'))


@pytest.fixture
def emp():
    return FakeEmp()


@pytest.fixture
def emp_client(emp):
    return FakeEmpClient(emp)


@pytest.fixture
def gas_estimator():
    return FakeGasEstimator()


@pytest.fixture
def price_feed():
    return FakePriceFeed()


@pytest.fixture
def logger():
    return RecordingLogger()


@pytest.fixture
def liquidator(logger, emp_client, gas_estimator, price_feed):
    return Liquidator(logger, emp_client, gas_estimator, price_feed, ACCOUNT)
