import concurrent.futures
import json
import logging
import pathlib as pl
import random
import string
import typing as tp

import robusta_tests.utils.types as ttypes

LOGGER = logging.getLogger(__name__)

T = tp.TypeVar("T")


def get_rand_str(length: int = 8) -> str:
    """Return random string."""
    if length < 1:
        return ""
    return "".join(random.choice(string.ascii_lowercase) for i in range(length))


def write_json(*, out_file: ttypes.FileType, content: dict) -> ttypes.FileType:
    """Write dictionary content to JSON file.

    The output uses two spaces indentation, the same as files written by the consensus node.
    """
    with open(pl.Path(out_file).expanduser(), "w", encoding="utf-8") as out_fp:
        out_fp.write(json.dumps(content, indent=2))
    return out_file


def format_duration(seconds: float) -> str:
    """Format duration the same way as Go's `time.Duration.String()`.

    >>> format_duration(90)
    '1m30s'
    >>> format_duration(0.5)
    '500ms'
    >>> format_duration(3600)
    '1h0m0s'
    """
    total_ns = round(seconds * 1_000_000_000)
    if total_ns == 0:
        return "0s"

    sign = "-" if total_ns < 0 else ""
    total_ns = abs(total_ns)

    def _fmt_frac(whole: int, frac: int, digits: int) -> str:
        frac_str = f"{frac:0{digits}d}".rstrip("0")
        return f"{whole}.{frac_str}" if frac_str else str(whole)

    if total_ns < 1_000:
        return f"{sign}{total_ns}ns"
    if total_ns < 1_000_000:
        return f"{sign}{_fmt_frac(total_ns // 1_000, total_ns % 1_000, 3)}µs"
    if total_ns < 1_000_000_000:
        return f"{sign}{_fmt_frac(total_ns // 1_000_000, total_ns % 1_000_000, 6)}ms"

    hours, rem_ns = divmod(total_ns, 3_600_000_000_000)
    minutes, rem_ns = divmod(rem_ns, 60_000_000_000)
    secs = _fmt_frac(rem_ns // 1_000_000_000, rem_ns % 1_000_000_000, 9)

    if hours:
        return f"{sign}{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{sign}{minutes}m{secs}s"
    return f"{sign}{secs}s"


def call_with_timeout(func: tp.Callable[[], T], *, timeout: float | None) -> T:
    """Call `func` and wait at most `timeout` seconds for the result.

    The call is not cancelled on timeout, it keeps running in a background thread.

    Raises:
        TimeoutError: The result was not available in time.
    """
    if not timeout:
        return func()

    executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(func)
        return future.result(timeout=timeout)
    finally:
        executor.shutdown(wait=False)
