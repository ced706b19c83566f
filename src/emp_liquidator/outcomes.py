'''
Per-item results of a liquidation or withdrawal pass.

A step function returns exactly one of these for every position or
liquidation it handles; the loop driver logs it and moves on.
'''
from dataclasses import dataclass, field
from enum import Enum


class Stage(Enum):
    SIMULATION = 'simulation'
    SUBMISSION = 'submission'


class SkipReason(Enum):
    NO_REWARDS = 'no rewards available'


@dataclass(frozen=True)
class Skipped:
    reason: SkipReason
    cause: Exception = None
    context: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Failed:
    stage: Stage
    cause: Exception
    context: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Succeeded:
    receipt_summary: dict
    context: dict = field(default_factory=dict)
