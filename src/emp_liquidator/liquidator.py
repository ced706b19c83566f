import threading

from emp_liquidator import fixed_point as fp
from emp_liquidator.config import LiquidatorConfig, create_config
from emp_liquidator.errors import PriceUnavailable
from emp_liquidator.outcomes import (
    Failed, Skipped, SkipReason, Stage, Succeeded
    )

AT = 'Liquidator'

LIQUIDATION_EVENT_FIELDS = (
    'sponsor', 'liquidator', 'liquidationId', 'tokensOutstanding',
    'lockedCollateral', 'liquidatedCollateral'
)
WITHDRAWAL_EVENT_FIELDS = ('caller', 'withdrawalAmount', 'liquidationStatus')


def compute_liquidation_boundary(oracle_price, cr_threshold, collateral_ratio):
    '''
    Scale the oracle price down by `cr_threshold` so positions slightly
    above the contract's minimum are treated as unsafe, and derive the
    highest collateral per token the contract will accept for a
    liquidation at that price.
    '''
    margin = fp.sub(fp.SCALE, fp.to_wei(cr_threshold))
    scaled_price = fp.mul(oracle_price, margin)
    # The contract checks capitalization, not collateralization, so the
    # CR ratio has to be folded into the upper bound.
    max_collateral_per_token = fp.mul(scaled_price, collateral_ratio)
    return scaled_price, max_collateral_per_token


def account_address(account):
    return str(getattr(account, 'address', account))


class ContractCall:
    '''
    A contract write method bound to its arguments. `simulate` dry-runs it
    with eth_call; `submit` broadcasts it and returns the receipt.
    '''
    def __init__(self, contract, method, *args):
        self.contract = contract
        self.method = method
        self.args = args

    def simulate(self, account):
        fn = getattr(self.contract, self.method)
        return fn.call(*self.args, {'from': account})

    def submit(self, txn_config):
        fn = getattr(self.contract, self.method)
        return fn(*self.args, txn_config)


def summarize_receipt(receipt, event_name, fields):
    summary = {'tx': getattr(receipt, 'txid', None)}
    events = getattr(receipt, 'events', None) or {}
    if event_name in events:
        event = events[event_name]
        # Keep whatever was decoded; a partial event still means success
        summary.update({f: event[f] for f in fields if f in event})
    return summary


class Liquidator:
    '''
    Liquidates undercollateralized EMP positions and withdraws rewards
    from resolved liquidations on behalf of `account`.

    logger: sink with debug/info/warn/error(at, message, **context)
    emp_client: state cache; `emp_client.emp` is the contract handle
    gas_estimator: exposes get_current_fast_price()
    price_feed: exposes get_current_price(), None when unavailable
    config: LiquidatorConfig or a partial override mapping
    '''
    def __init__(self, logger, emp_client, gas_estimator, price_feed,
                 account, config=None):
        self.logger = logger
        self.account = account
        self.emp_client = emp_client
        self.emp = emp_client.emp
        self.gas_estimator = gas_estimator
        self.price_feed = price_feed

        # Read from the contract on the first update, never refetched.
        self.emp_cr_ratio = None
        self._cr_ratio_lock = threading.Lock()

        if isinstance(config, LiquidatorConfig):
            self.config = config
        else:
            self.config = create_config(config)

    def update(self):
        self.emp_client.update()
        self.gas_estimator.update()
        self.price_feed.update()
        self._fetch_cr_ratio()

    def _fetch_cr_ratio(self):
        if self.emp_cr_ratio is not None:
            return
        with self._cr_ratio_lock:
            if self.emp_cr_ratio is None:
                self.emp_cr_ratio = fp.raw_value(
                    self.emp.collateralRequirement())

    def _current_price(self):
        price = self.price_feed.get_current_price()
        if price is None or price <= 0:
            raise PriceUnavailable(f'Price feed returned {price!r}')
        return price

    def _txn_config(self):
        return {
            'from': self.account,
            'gas_limit': self.config.txn_gas_limit,
            'gas_price': self.gas_estimator.get_current_fast_price()
        }

    def scan_undercollateralized(self, scaled_price):
        return list(
            self.emp_client.get_undercollateralized_positions(scaled_price))

    def withdrawable_liquidations(self):
        # Candidates are picked by status alone; whether anything is left
        # to withdraw is only known after simulating.
        me = account_address(self.account).lower()
        liquidations = (list(self.emp_client.get_expired_liquidations()) +
                        list(self.emp_client.get_disputed_liquidations()))
        return [liq for liq in liquidations
                if str(liq.liquidator).lower() == me]

    def liquidate_position(self, position, max_collateral_per_token):
        # Re-read per position so the deadline is never in the past.
        deadline = (int(self.emp_client.get_last_update_time()) +
                    self.config.liquidation_deadline)
        liquidation = ContractCall(
            self.emp, 'createLiquidation',
            position.sponsor,
            (self.config.liquidation_min_price,),
            (max_collateral_per_token,),
            (position.num_tokens,),
            deadline
            )
        context = {'sponsor': position.sponsor, 'position': position,
                   'deadline': deadline}

        # Any revert here is taken to mean missing synthetic balance or
        # approval.
        try:
            liquidation.simulate(self.account)
        except Exception as e:
            return Failed(Stage.SIMULATION, e, context)

        txn_config = self._txn_config()
        context['txn_config'] = txn_config
        try:
            receipt = liquidation.submit(txn_config)
        except Exception as e:
            return Failed(Stage.SUBMISSION, e, context)

        summary = summarize_receipt(
            receipt, 'LiquidationCreated', LIQUIDATION_EVENT_FIELDS)
        return Succeeded(summary, context)

    def withdraw_liquidation(self, liquidation):
        withdraw = ContractCall(
            self.emp, 'withdrawLiquidation', liquidation.id,
            liquidation.sponsor
            )
        context = {'liquidation': liquidation}

        try:
            amount = fp.raw_value(withdraw.simulate(self.account))
        except Exception as e:
            return Skipped(SkipReason.NO_REWARDS, e, context)
        context['amount'] = amount

        txn_config = self._txn_config()
        context['txn_config'] = txn_config
        try:
            receipt = withdraw.submit(txn_config)
        except Exception as e:
            return Failed(Stage.SUBMISSION, e, context)

        summary = summarize_receipt(
            receipt, 'LiquidationWithdrawn', WITHDRAWAL_EVENT_FIELDS)
        return Succeeded(summary, context)

    def _log_liquidation(self, outcome, scaled_price):
        price = fp.from_wei(scaled_price)
        if isinstance(outcome, Succeeded):
            self.logger.info(
                AT, 'Position has been liquidated!', input_price=price,
                liquidation_result=outcome.receipt_summary, **outcome.context)
        elif outcome.stage is Stage.SIMULATION:
            self.logger.error(
                AT, 'Cannot liquidate position: not enough synthetic (or '
                'large enough approval) to initiate liquidation',
                input_price=price, error=repr(outcome.cause),
                **outcome.context)
        else:
            self.logger.error(
                AT, 'Failed to liquidate position', input_price=price,
                error=repr(outcome.cause), **outcome.context)

    def _log_withdrawal(self, outcome):
        if isinstance(outcome, Succeeded):
            self.logger.info(
                AT, 'Liquidation withdrawn',
                liquidation_result=outcome.receipt_summary, **outcome.context)
        elif isinstance(outcome, Skipped):
            self.logger.debug(
                AT, 'No rewards to withdraw', error=repr(outcome.cause),
                **outcome.context)
        else:
            self.logger.error(
                AT, 'Failed to withdraw liquidation rewards',
                error=repr(outcome.cause), **outcome.context)

    def query_and_liquidate(self):
        '''
        Liquidate every position the cache reports as undercollateralized
        at the scaled-down oracle price. Returns one outcome per position.
        '''
        self.update()

        try:
            price = self._current_price()
        except PriceUnavailable as e:
            self.logger.warn(
                AT, 'Cannot liquidate: price feed returned invalid value',
                error=str(e))
            return []

        scaled_price, max_collateral_per_token = compute_liquidation_boundary(
            price, self.config.cr_threshold, self.emp_cr_ratio)
        boundary = {
            'input_price': fp.from_wei(price),
            'scaled_price': fp.from_wei(scaled_price),
            'emp_cr_ratio': fp.from_wei(self.emp_cr_ratio),
            'max_collateral_per_token': fp.from_wei(max_collateral_per_token),
            'cr_threshold': self.config.cr_threshold
        }

        positions = self.scan_undercollateralized(scaled_price)
        if len(positions) == 0:
            self.logger.debug(AT, 'No undercollateralized position',
                              **boundary)
            return []

        self.logger.debug(AT, 'Liquidating undercollateralized positions',
                          count=len(positions), **boundary)
        outcomes = []
        for position in positions:
            outcome = self.liquidate_position(
                position, max_collateral_per_token)
            self._log_liquidation(outcome, scaled_price)
            outcomes.append(outcome)

        # New liquidations were created, pick them up.
        self.emp_client.update()
        return outcomes

    def query_and_withdraw_rewards(self):
        '''
        Withdraw rewards from expired and disputed liquidations created by
        this account. Returns one outcome per candidate liquidation.
        '''
        self.update()

        liquidations = self.withdrawable_liquidations()
        if len(liquidations) == 0:
            self.logger.debug(AT, 'No withdrawable liquidations')
            return []

        self.logger.debug(
            AT, 'Checking expired and disputed liquidations for rewards',
            count=len(liquidations))
        outcomes = []
        for liquidation in liquidations:
            outcome = self.withdraw_liquidation(liquidation)
            self._log_withdrawal(outcome)
            outcomes.append(outcome)

        self.emp_client.update()
        return outcomes
