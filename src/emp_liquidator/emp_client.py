import time

from emp_liquidator import fixed_point as fp
from emp_liquidator.models import Liquidation, LiquidationStatus, Position
from emp_liquidator.notify import print_w_time

BLOCK_WINDOW = 100_000
ZERO_ADDRESS = '0x0000000000000000000000000000000000000000'


def try_with_backoff(func, max_tries=6, sleep=time.sleep):
    '''
    Try running function with exponential backoff.
    Used for making node calls here. Re-raises after `max_tries`.
    '''
    tries = 1
    while True:
        try:
            return func()
        except Exception as e:
            print_w_time(f"Error: {str(e)}")
            if tries >= max_tries:
                raise
            backoff_interval = (2 ** tries) / 10
            tries += 1
            print_w_time(f'Sleeping for {backoff_interval} secs')
            sleep(backoff_interval)


def is_undercollateralized(num_tokens, collateral, price, collateral_ratio):
    # collateral / tokens < price * ratio, kept in integers
    return (collateral * fp.SCALE * fp.SCALE <
            num_tokens * price * collateral_ratio)


class EmpClient:
    '''
    Cache of sponsor positions and liquidations for one EMP contract.

    Sponsors are discovered from contract events; their positions and
    liquidations are re-read from the contract on every `update`.
    '''
    def __init__(self, emp, chain, start_block=0, sleep=time.sleep):
        self.emp = emp
        self.chain = chain
        self.start_block = start_block
        self.sleep = sleep

        self.sponsors = set()
        self.liquidated_sponsors = set()
        self.positions = []
        self.liquidations = []
        self.collateral_requirement = None
        self.liquidation_liveness = None
        self.last_update_time = None

    def _call(self, func):
        return try_with_backoff(func, sleep=self.sleep)

    def _sync_events(self):
        end_block = self.chain.height
        while self.start_block <= end_block:
            to_block = min(end_block, self.start_block + BLOCK_WINDOW - 1)
            from_block = self.start_block
            events = self._call(lambda: self.emp.events.get_sequence(
                from_block=from_block, to_block=to_block))
            self._arrange_events(events)
            print_w_time(
                f'Obtained EMP events from blocks {from_block} to {to_block}'
            )
            self.start_block = to_block + 1

    def _arrange_events(self, events):
        for ev in events.get('PositionCreated', []):
            self.sponsors.add(ev.args.sponsor)
        for ev in events.get('NewSponsor', []):
            self.sponsors.add(ev.args.sponsor)
        for ev in events.get('LiquidationCreated', []):
            self.liquidated_sponsors.add(ev.args.sponsor)
        for ev in events.get('EndedSponsorPosition', []):
            self.sponsors.discard(ev.args.sponsor)

    def _read_position(self, sponsor):
        data = self._call(lambda: self.emp.positions(sponsor))
        collateral = fp.raw_value(self._call(
            lambda: self.emp.getCollateral(sponsor)))
        return Position(
            sponsor=sponsor,
            num_tokens=fp.raw_value(data[0]),
            amount_collateral=collateral,
            withdrawal_request_amount=fp.raw_value(data[2]),
            withdrawal_request_pass_timestamp=int(data[1])
        )

    def _read_liquidations(self, sponsor):
        result = []
        data = self._call(lambda: self.emp.getLiquidations(sponsor))
        for liq_id, liq in enumerate(data):
            status = LiquidationStatus(int(liq[2]))
            # Deleted liquidations are zeroed out on-chain
            if (status is LiquidationStatus.UNINITIALIZED or
                    str(liq[0]) == ZERO_ADDRESS):
                continue
            result.append(Liquidation(
                id=liq_id,
                sponsor=liq[0],
                liquidator=liq[1],
                status=status,
                liquidation_time=int(liq[3]),
                num_tokens=fp.raw_value(liq[4]),
                locked_collateral=fp.raw_value(liq[5]),
                liquidated_collateral=fp.raw_value(liq[6]),
                disputer=liq[8]
            ))
        return result

    def update(self):
        if self.collateral_requirement is None:
            self.collateral_requirement = fp.raw_value(
                self._call(self.emp.collateralRequirement))
        if self.liquidation_liveness is None:
            self.liquidation_liveness = int(
                self._call(self.emp.liquidationLiveness))

        self._sync_events()

        positions = [self._read_position(s) for s in sorted(self.sponsors)]
        self.positions = [p for p in positions if p.num_tokens > 0]
        liq_sponsors = sorted(self.liquidated_sponsors)
        self.liquidations = [liq for s in liq_sponsors
                             for liq in self._read_liquidations(s)]
        self.last_update_time = int(self.chain.time())
        print_w_time(
            f'Tracking {len(self.positions)} positions and '
            f'{len(self.liquidations)} liquidations'
        )

    def get_undercollateralized_positions(self, price):
        result = []
        for pos in self.positions:
            collateral = pos.amount_collateral
            if pos.has_pending_withdrawal:
                collateral -= pos.withdrawal_request_amount
            if is_undercollateralized(pos.num_tokens, collateral, price,
                                      self.collateral_requirement):
                result.append(pos)
        return result

    def get_expired_liquidations(self):
        return [liq for liq in self.liquidations
                if liq.status is LiquidationStatus.PRE_DISPUTE and
                liq.liquidation_time + self.liquidation_liveness <=
                self.last_update_time]

    def get_disputed_liquidations(self):
        return [liq for liq in self.liquidations
                if liq.status is LiquidationStatus.PENDING_DISPUTE]

    def get_last_update_time(self):
        return self.last_update_time
