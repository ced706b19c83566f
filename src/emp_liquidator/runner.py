import json
import os
import time
import traceback

import click
from brownie import Contract, accounts, chain, network, web3

from emp_liquidator.config import create_config
from emp_liquidator.emp_client import EmpClient
from emp_liquidator.gas_estimator import GasEstimator
from emp_liquidator.liquidator import Liquidator
from emp_liquidator.notify import Logger, TelegramNotifier, print_w_time
from emp_liquidator.price_feed import ChainlinkPriceFeed

AT = 'Runner'
MAX_ATTEMPTS = 5
RESTART_DELAY = 300
ALERT_INTERVAL = 21600
LOW_BALANCE = 5 * 10 ** 17


def get_constants_path():
    script_path = os.path.realpath(__file__)
    repo = os.path.abspath(
        os.path.join(script_path, os.pardir, os.pardir, os.pardir))
    return os.path.join(repo, 'scripts', 'constants')


def read_json(filename, constants_path=None):
    path = os.path.join(constants_path or get_constants_path(), filename)
    with open(path) as f:
        return json.load(f)


def get_constants(chain_name, constants_path=None):
    const = read_json('constants.json', constants_path)
    return const[chain_name]


def init_account(acc, password):
    return accounts.load(acc, password=password)


def load_contract(address, constants_path=None):
    try:
        return Contract(address)
    except Exception as e:
        print_w_time(f'Unable to load address {address} from cache')
        print_w_time(f"Error: {str(e)}")
    try:
        return Contract.from_explorer(address)
    except Exception as e:
        print_w_time(f'Unable to load address {address} from block explorer')
        print_w_time(f"Error: {str(e)}")
    abis = read_json('abis.json', constants_path)
    if address not in abis:
        raise ValueError(f'Address abi unavailable. Unable to load {address}')
    return Contract.from_abi('contract', address, abis[address])


def init_logger(consts, constants_path=None):
    notifier = None
    telegram_path = os.path.join(
        constants_path or get_constants_path(), 'telegram.json')
    if os.path.exists(telegram_path):
        notifier = TelegramNotifier.from_json(
            read_json('telegram.json', constants_path))
    return Logger(
        level=consts.get('log_level', 'debug'),
        notifier=notifier,
        notify_level=consts.get('notify_level', 'info')
    )


def build_liquidator(acc, consts, logger, constants_path=None):
    emp = load_contract(consts['emp'], constants_path)
    emp_client = EmpClient(emp, chain, start_block=int(consts['start_block']))
    gas_estimator = GasEstimator(
        web3, multiplier=consts.get('gas_multiplier', '1.25'))
    price_feed = ChainlinkPriceFeed(
        load_contract(consts['price_feed'], constants_path),
        max_age=int(consts.get('price_max_age', 3600)),
        invert=bool(consts.get('invert_price', False))
    )
    config = create_config(consts.get('liquidator_config', {}))
    return Liquidator(logger, emp_client, gas_estimator, price_feed, acc,
                      config)


def run(acc_name, chain_name, constants_path=None, once=False):
    secrets = read_json('secrets.json', constants_path)
    consts = get_constants(chain_name, constants_path)
    logger = init_logger(consts, constants_path)
    poll_interval = int(consts.get('poll_interval', 60))

    attempt_count = 0
    last_balance_alert = 0
    acc = None
    while True:
        try:
            acc = init_account(acc_name, secrets['brownie_pass'])
            print_w_time(f'Account {acc.address} loaded')
            liquidator = build_liquidator(acc, consts, logger, constants_path)
            logger.info(AT, f'LIQUIDATOR {acc.address} STARTED',
                        emp=consts['emp'], config=liquidator.config)

            while True:
                liquidator.query_and_liquidate()
                liquidator.query_and_withdraw_rewards()
                attempt_count = 0

                # Inform if balance is low once every 6 hours
                balance = acc.balance()
                if (balance < LOW_BALANCE and
                        time.time() - last_balance_alert > ALERT_INTERVAL):
                    logger.warn(AT, f'LIQUIDATOR {acc.address} LOW BALANCE',
                                balance=balance / 1e18)
                    last_balance_alert = time.time()

                if once:
                    return
                time.sleep(poll_interval)
        except Exception:
            if once:
                raise
            address = acc.address if acc is not None else acc_name
            logger.error(
                AT, f'LIQUIDATOR {address} STOPPED',
                error=traceback.format_exc(),
                restart_in=f'{RESTART_DELAY} secs'
            )
            attempt_count += 1
            if attempt_count >= MAX_ATTEMPTS:
                logger.error(
                    AT, f'LIQUIDATOR {address} STOPPED after {MAX_ATTEMPTS} '
                    'attempts. Maximum attempt limit reached. Exiting...'
                )
                break
            time.sleep(RESTART_DELAY)


@click.command()
@click.option('--account', 'acc_name', required=True,
              help='Name of the brownie account to send transactions from.')
@click.option('--chain', 'chain_name', required=True,
              help='Key of the chain entry in constants.json.')
@click.option('--network', 'network_name', default=None,
              help='Brownie network id. Defaults to --chain.')
@click.option('--constants-dir', default=None,
              type=click.Path(exists=True, file_okay=False),
              help='Directory holding constants.json and secrets.json.')
@click.option('--once', is_flag=True,
              help='Run a single liquidate/withdraw pass and exit.')
def cli(acc_name, chain_name, network_name, constants_dir, once):
    '''
    Liquidate undercollateralized EMP positions and withdraw rewards.
    '''
    network.connect(network_name or chain_name)
    click.echo(f"You are using the '{network.show_active()}' network")
    run(acc_name, chain_name, constants_path=constants_dir, once=once)
