# Entry point for `brownie run scripts/liquidator.py main <account> <chain>`
from emp_liquidator.runner import run


def main(acc_name, chain_name):
    run(acc_name, chain_name)
