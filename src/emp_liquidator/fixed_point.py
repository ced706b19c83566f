'''
Scaled-integer arithmetic for prices, ratios and collateral amounts.

Every quantity is an int scaled by 10**18 ("wei"). Multiplication and
division truncate toward zero.
'''
from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext

DECIMALS = 18
SCALE = 10 ** DECIMALS


def _trunc_div(num, den):
    q = abs(num) // abs(den)
    return -q if (num < 0) != (den < 0) else q


def mul(a, b):
    return _trunc_div(a * b, SCALE)


def div(a, b):
    return _trunc_div(a * SCALE, b)


def sub(a, b):
    return a - b


def to_wei(value):
    '''
    Convert a decimal string (or int/float/Decimal) to a scaled int.
    Digits past the 18th fractional place are dropped.
    '''
    try:
        d = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f'Not a decimal value: {value!r}')
    if not d.is_finite():
        raise ValueError(f'Not a finite decimal value: {value!r}')
    with localcontext() as ctx:
        ctx.prec = 120
        scaled = (d * SCALE).to_integral_value(rounding=ROUND_DOWN)
    return int(scaled)


def from_wei(amount):
    '''
    Render a scaled int as its canonical decimal string.
    '''
    amount = int(amount)
    sign = '-' if amount < 0 else ''
    whole, frac = divmod(abs(amount), SCALE)
    if frac == 0:
        return f'{sign}{whole}'
    frac_str = str(frac).rjust(DECIMALS, '0').rstrip('0')
    return f'{sign}{whole}.{frac_str}'


def raw_value(value):
    # FixedPoint structs come back from the contract as a one element tuple
    if isinstance(value, (tuple, list)):
        return int(value[0])
    return int(value)
