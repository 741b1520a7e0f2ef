"""Device log (logcat) dumps."""

import time
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel

from penumbra_installer.logger import get_logger
from penumbra_installer.services.device import AdbDeviceController

logger = get_logger(__name__)


def dump_filename(timestamp_ms: int | None = None) -> str:
    """Name of a new dump file, keyed by the current time in milliseconds."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"penumbra_log_dump_{timestamp_ms}.log"


class LogDump(BaseModel):
    """Destination and progress of a log dump."""

    path: Path
    line_count: int = 0


async def dump_logcat(device: AdbDeviceController, dest_dir: Path) -> LogDump:
    """Write the current logcat buffer (``logcat -d``) to a new file in ``dest_dir``."""
    dump = LogDump(path=dest_dir / dump_filename())
    output = await device.shell("logcat -d")

    dump.path.write_text(output, encoding="utf-8")
    dump.line_count = len(output.split("\n"))

    logger.info("Wrote log dump", path=str(dump.path), lines=dump.line_count)
    return dump


async def stream_logcat(
    device: AdbDeviceController,
    dump: LogDump,
    echo: Callable[[str], None] = print,
) -> None:
    """
    Follow logcat, writing every line to the dump file and echoing it.

    Runs until the device closes the stream or the caller cancels the task;
    ``dump.line_count`` stays current either way.
    """
    with open(dump.path, "w", encoding="utf-8") as out_file:
        async for line in device.stream_shell("logcat"):
            out_file.write(line + "\n")
            out_file.flush()
            echo(line)
            dump.line_count += 1
