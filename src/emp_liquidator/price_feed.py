import time

from emp_liquidator import fixed_point as fp


class ChainlinkPriceFeed:
    '''
    Token price from a Chainlink style aggregator, scaled to 18 decimals.

    `invert` reports 1/price, for EMPs whose price identifier is quoted
    the other way round. A non-positive or stale answer is reported as
    no price at all.
    '''
    def __init__(self, aggregator, max_age=3600, invert=False,
                 clock=time.time):
        self.aggregator = aggregator
        self.max_age = max_age
        self.invert = invert
        self.clock = clock
        self.decimals = None
        self.price = None
        self.updated_at = None

    def update(self):
        if self.decimals is None:
            self.decimals = int(self.aggregator.decimals())
        _, answer, _, updated_at, _ = self.aggregator.latestRoundData()
        self.updated_at = int(updated_at)
        answer = int(answer)
        if answer <= 0:
            self.price = None
            return
        price = answer * fp.SCALE // 10 ** self.decimals
        if self.invert:
            price = fp.div(fp.SCALE, price) if price > 0 else None
        self.price = price

    def get_current_price(self):
        if self.price is None:
            return None
        if self.clock() - self.updated_at > self.max_age:
            return None
        return self.price
