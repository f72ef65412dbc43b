#!/usr/bin/env python3

from datetime import datetime
import sys
if sys.version_info >= (3, 11): from datetime import UTC
else: import datetime as datetime_fix; UTC=datetime_fix.timezone.utc

def _utcnow():
    return datetime.now(UTC).replace(tzinfo=None)

class RunLog:
    # Simple progress logger, each line gets a timestamp (or a timer) in front
    # of it.  Everything that wants to report something gets one of these
    # passed in, there's no global logger.
    def __init__(self, verbose=False, log_format="Time", file=None):
        if log_format.lower() not in {"time", "timer", "none"}:
            raise Exception("Use 'Time', 'Timer', or 'None' for the log format")
        self.file = file
        self.start = _utcnow()
        self.log_format = log_format.lower()
        self.verbose = verbose

    def __call__(self, value, **kwargs):
        self.info(value, **kwargs)

    def debug(self, value, **kwargs):
        if self.verbose:
            self.show("DEBUG", value, kwargs)

    def info(self, value, **kwargs):
        self.show("INFO", value, kwargs)

    def warning(self, value, **kwargs):
        self.show("WARN", value, kwargs)

    def error(self, value, **kwargs):
        self.show("ERROR", value, kwargs)

    def show(self, level, value, fields):
        msg = f"{level:<5} {value}"
        if len(fields):
            msg += " " + " ".join(f"{k}={format_value(v)}" for k, v in fields.items())
        # Look up stdout each time, it might have been swapped out since we started
        file = self.file or sys.stdout
        if self.log_format == "timer":
            return show_timer(msg, self.start, file=file)
        elif self.log_format == "time":
            return show(msg, file=file)
        else:
            print(msg, file=file, flush=True)
            return msg

class NullLog(RunLog):
    # Same interface, but stays quiet, used when the caller doesn't care
    def __init__(self):
        super().__init__(verbose=False, log_format="None")

    def show(self, level, value, fields):
        return ""

def format_value(value):
    # Sets have no useful order, show them sorted so the output is stable
    if isinstance(value, (set, frozenset)):
        value = sorted(value)
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(str(x) for x in value) + "]"
    value = str(value)
    if " " in value:
        return f'"{value}"'
    return value

def show(value, end="\n", flush=True, begin="", file=None):
    msg = f'{_utcnow().strftime("%d %H:%M:%S")}: {value}'
    print(begin + msg, end=end, flush=flush, file=file)
    return msg

def show_timer(value, start, end="\n", flush=True, begin="", file=None):
    secs = int((_utcnow() - start).total_seconds())
    msg = f'{secs // 3600}:{(secs // 60) % 60:02d}:{secs % 60:02d}: {value}'
    print(begin + msg, end=end, flush=flush, file=file)
    return msg

if __name__ == '__main__':
    print("This module is not meant to be run directly")
