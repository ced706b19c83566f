from emp_liquidator.config import LiquidatorConfig, create_config
from emp_liquidator.errors import ConfigInvalid, PriceUnavailable
from emp_liquidator.liquidator import Liquidator, compute_liquidation_boundary

__all__ = [
    'ConfigInvalid',
    'Liquidator',
    'LiquidatorConfig',
    'PriceUnavailable',
    'compute_liquidation_boundary',
    'create_config',
]
