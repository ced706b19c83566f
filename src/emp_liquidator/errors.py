class ConfigInvalid(ValueError):
    '''
    Raised when a liquidator config override fails its validator.
    '''
    def __init__(self, key, value):
        self.key = key
        self.value = value
        super().__init__(f'Invalid value for config key {key}: {value!r}')


class PriceUnavailable(RuntimeError):
    '''
    The price feed has no current value, so the liquidate pass is aborted.
    '''
