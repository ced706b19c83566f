import time

from emp_liquidator import fixed_point as fp
from emp_liquidator.notify import print_w_time

DEFAULT_GAS_PRICE = 50 * 10 ** 9  # 50 gwei


class GasEstimator:
    '''
    "Fast" gas price: the node's current gas price bumped by `multiplier`.
    Re-read at most once every `update_threshold` seconds.
    '''
    def __init__(self, web3, multiplier='1.25', update_threshold=60,
                 default_price=DEFAULT_GAS_PRICE, clock=time.time):
        self.web3 = web3
        self.multiplier = fp.to_wei(multiplier)
        self.update_threshold = update_threshold
        self.default_price = default_price
        self.clock = clock
        self.last_update = None
        self.fast_price = default_price

    def update(self):
        now = self.clock()
        if (self.last_update is not None and
                now - self.last_update < self.update_threshold):
            return
        try:
            gas_price = int(self.web3.eth.gas_price)
            self.fast_price = fp.mul(gas_price, self.multiplier)
        except Exception as e:
            print_w_time(f'Unable to read gas price, using default: {str(e)}')
            self.fast_price = self.default_price
        self.last_update = now

    def get_current_fast_price(self):
        return self.fast_price
