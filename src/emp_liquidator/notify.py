import asyncio
import datetime

from telegram import Bot

LEVELS = {'debug': 10, 'info': 20, 'warn': 30, 'error': 40}


def print_w_time(string):
    gmt_offset = datetime.timezone(datetime.timedelta(hours=0))
    current_time =\
        datetime.datetime.now(gmt_offset).strftime('%Y-%m-%d %H:%M:%S')
    print(f"[{current_time} GMT] {string}", flush=True)


async def send_telegram_message(message, bot_token, chat_id, notify):
    bot = Bot(token=bot_token)
    await bot.send_message(
        chat_id=chat_id,
        text=message,
        disable_notification=notify
        )


class TelegramNotifier:
    def __init__(self, token, chat_id):
        self.token = token
        self.chat_id = chat_id

    @classmethod
    def from_json(cls, telegram):
        return cls(telegram['telegram_token'], telegram['telegram_chat_id'])

    def send(self, message, notify):
        asyncio.run(
            send_telegram_message(message, self.token, self.chat_id, notify)
        )


def format_record(level, at, message, context):
    line = f'{level.upper()} [{at}] {message}'
    if context:
        line += ' ' + ' '.join(f'{k}={v}' for k, v in context.items())
    return line


class Logger:
    '''
    Structured log sink: prints every record at or above `level` and
    forwards records at or above `notify_level` to Telegram.

    Logging never raises. A failing notifier is reported on stdout only.
    '''
    def __init__(self, level='debug', notifier=None, notify_level='info'):
        self.level = LEVELS[level]
        self.notifier = notifier
        self.notify_level = LEVELS[notify_level]

    def log(self, level, at, message, **context):
        # Unknown level names are treated as errors
        if level not in LEVELS:
            level = 'error'
        if LEVELS[level] < self.level:
            return
        try:
            line = format_record(level, at, message, context)
        except Exception as e:
            line = f'{level.upper()} [{at}] {message} (bad context: {e})'
        try:
            print_w_time(line)
        except (OSError, ValueError):
            pass
        if self.notifier is None or LEVELS[level] < self.notify_level:
            return
        # Errors ring; everything else is delivered silently.
        silent = level != 'error'
        try:
            self.notifier.send(line, silent)
        except Exception as e:
            try:
                print_w_time(f'Unable to send notification: {str(e)}')
            except (OSError, ValueError):
                pass

    def debug(self, at, message, **context):
        self.log('debug', at, message, **context)

    def info(self, at, message, **context):
        self.log('info', at, message, **context)

    def warn(self, at, message, **context):
        self.log('warn', at, message, **context)

    def error(self, at, message, **context):
        self.log('error', at, message, **context)
