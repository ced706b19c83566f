from dataclasses import dataclass
from decimal import Decimal

from emp_liquidator.errors import ConfigInvalid

MIN_GAS_LIMIT = 6_000_000
MAX_GAS_LIMIT = 15_000_000


def _is_valid_cr_threshold(x):
    # If collateral falls more than `cr_threshold` below the min collateral
    # requirement the position is liquidated. With a 120% requirement and
    # cr_threshold = 0.02 that is 120 * (1 - 0.02) = 117.6.
    if isinstance(x, bool):
        return False
    return Decimal(0) <= Decimal(str(x)) < Decimal(1)


def _is_valid_deadline(x):
    # Seconds after the client's last update time before the liquidation
    # transaction aborts itself on-chain.
    return isinstance(x, int) and not isinstance(x, bool) and x >= 0


def _is_valid_min_price(x):
    # Minimum collateral per token (wei) a position must hold to be
    # liquidated by us.
    if isinstance(x, bool):
        return False
    if isinstance(x, (float, Decimal)) and int(x) != x:
        return False
    return int(x) >= 0


def _is_valid_gas_limit(x):
    if not isinstance(x, int) or isinstance(x, bool):
        return False
    return MIN_GAS_LIMIT <= x < MAX_GAS_LIMIT


# key: (default value, validator)
DEFAULT_CONFIG = {
    'cr_threshold': (0.02, _is_valid_cr_threshold),
    'liquidation_deadline': (300, _is_valid_deadline),
    'liquidation_min_price': (0, _is_valid_min_price),
    'txn_gas_limit': (9_000_000, _is_valid_gas_limit),
}

CAMEL_CASE_KEYS = {
    'crThreshold': 'cr_threshold',
    'liquidationDeadline': 'liquidation_deadline',
    'liquidationMinPrice': 'liquidation_min_price',
    'txnGasLimit': 'txn_gas_limit',
}


@dataclass(frozen=True)
class LiquidatorConfig:
    cr_threshold: float
    liquidation_deadline: int
    liquidation_min_price: int
    txn_gas_limit: int


def _accepts(validator, value):
    try:
        return bool(validator(value))
    except (TypeError, ValueError, ArithmeticError):
        return False


def create_config(overrides=None, defaults=DEFAULT_CONFIG):
    '''
    Build a LiquidatorConfig from a partial override mapping.

    Keys may be snake_case or camelCase. Every override must pass the
    validator paired with its default, else ConfigInvalid is raised.
    Missing keys take the default as is.
    '''
    values = {key: default for key, (default, _) in defaults.items()}
    for key, value in (overrides or {}).items():
        name = CAMEL_CASE_KEYS.get(key, key)
        if name not in defaults:
            raise ConfigInvalid(key, value)
        _, validator = defaults[name]
        if not _accepts(validator, value):
            raise ConfigInvalid(key, value)
        values[name] = value
    values['liquidation_min_price'] = int(values['liquidation_min_price'])
    return LiquidatorConfig(**values)
