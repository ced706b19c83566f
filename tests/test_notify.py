import re

from emp_liquidator import notify
from emp_liquidator.notify import Logger, TelegramNotifier, format_record


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send(self, message, notify):
        self.sent.append((message, notify))


class BrokenNotifier:
    def send(self, message, notify):
        raise ConnectionError('telegram down')


def test_print_w_time(capsys):
    notify.print_w_time('hello')
    out = capsys.readouterr().out
    assert re.match(r'\[\d{4}-\d\d-\d\d \d\d:\d\d:\d\d GMT\] hello', out)


def test_format_record():
    line = format_record('error', 'Liquidator', 'Failed', {'tx': '0x1'})
    assert line == 'ERROR [Liquidator] Failed tx=0x1'
    assert format_record('debug', 'X', 'msg', {}) == 'DEBUG [X] msg'


def test_level_filtering(capsys):
    logger = Logger(level='info')
    logger.debug('Liquidator', 'hidden')
    logger.info('Liquidator', 'shown', count=2)
    out = capsys.readouterr().out
    assert 'hidden' not in out
    assert 'INFO [Liquidator] shown count=2' in out


def test_notifications_respect_notify_level():
    notifier = RecordingNotifier()
    logger = Logger(notifier=notifier, notify_level='info')
    logger.debug('Liquidator', 'quiet')
    logger.info('Liquidator', 'withdrawn')
    logger.warn('Liquidator', 'no price')
    logger.error('Liquidator', 'failed')
    assert notifier.sent == [
        ('INFO [Liquidator] withdrawn', True),
        ('WARN [Liquidator] no price', True),
        ('ERROR [Liquidator] failed', False),
    ]


def test_failing_notifier_does_not_raise(capsys):
    logger = Logger(notifier=BrokenNotifier())
    logger.error('Liquidator', 'failed')
    out = capsys.readouterr().out
    assert 'Unable to send notification: telegram down' in out


def test_bad_context_does_not_raise(capsys):
    class Unprintable:
        def __str__(self):
            raise RuntimeError('boom')

    Logger().info('Liquidator', 'odd', value=Unprintable())
    assert 'INFO [Liquidator] odd (bad context: boom)' in capsys.readouterr().out


def test_unknown_level_logged_as_error(capsys):
    notifier = RecordingNotifier()
    logger = Logger(level='info', notifier=notifier)
    logger.log('verbose', 'Liquidator', 'odd')
    assert 'ERROR [Liquidator] odd' in capsys.readouterr().out
    assert notifier.sent == [('ERROR [Liquidator] odd', False)]


def test_closed_stdout_does_not_raise(monkeypatch):
    def closed(string):
        raise ValueError('I/O operation on closed file')

    monkeypatch.setattr(notify, 'print_w_time', closed)
    Logger(notifier=BrokenNotifier()).error('Liquidator', 'failed')


def test_telegram_notifier_sends(monkeypatch):
    sent = []

    class FakeBot:
        def __init__(self, token):
            self.token = token

        async def send_message(self, **kwargs):
            sent.append((self.token, kwargs))

    monkeypatch.setattr(notify, 'Bot', FakeBot)
    notifier = TelegramNotifier.from_json(
        {'telegram_token': 'abc', 'telegram_chat_id': 42})
    notifier.send('LIQUIDATOR STARTED', False)
    assert sent == [('abc', {
        'chat_id': 42,
        'text': 'LIQUIDATOR STARTED',
        'disable_notification': False,
    })]
