import datetime
import logging
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .settings import Settings


LOGGER_NAME = "dialogpro"

LOG_LEVELS = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

_LOGGING_CONFIGURED = False


class LocalTimezoneFormatter(logging.Formatter):
    """
    Formatter that renders timestamps in the configured LOG_TIMEZONE,
    falling back to the system local timezone when unset or unknown.
    """

    def __init__(self, *args, timezone_name: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._tzinfo = self._resolve_tzinfo(timezone_name)

    @staticmethod
    def _resolve_tzinfo(timezone_name: str | None) -> datetime.tzinfo:
        if timezone_name:
            try:
                return ZoneInfo(timezone_name)
            except ZoneInfoNotFoundError:
                pass
        return datetime.datetime.now().astimezone().tzinfo or datetime.timezone.utc

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        dt = datetime.datetime.fromtimestamp(record.created, tz=self._tzinfo)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.isoformat(timespec="milliseconds")


class DailyFileHandler(logging.Handler):
    """
    Writes each day's records to <log_dir>/<prefix>-YYYY-MM-DD.log and
    keeps at most `backup_count` of those files around.
    """

    def __init__(
        self,
        log_dir: Path,
        filename_prefix: str = LOGGER_NAME,
        backup_count: int = 7,
        encoding: str = "utf-8",
    ) -> None:
        super().__init__()
        self.log_dir = log_dir
        self.filename_prefix = filename_prefix
        self.backup_count = backup_count
        self.encoding = encoding
        self._day: datetime.date | None = None
        self._stream = None

    def _path_for(self, day: datetime.date) -> Path:
        return self.log_dir / f"{self.filename_prefix}-{day.isoformat()}.log"

    def _prune(self) -> None:
        if self.backup_count <= 0:
            return
        files = sorted(self.log_dir.glob(f"{self.filename_prefix}-*.log"))
        for old in files[: max(0, len(files) - self.backup_count)]:
            try:
                old.unlink()
            except OSError:
                pass

    def _rollover_if_needed(self) -> None:
        today = datetime.date.today()
        if self._stream is not None and self._day == today:
            return
        if self._stream is not None:
            self._stream.close()
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._day = today
        self._stream = open(self._path_for(today), "a", encoding=self.encoding)
        self._prune()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            self._rollover_if_needed()
            self._stream.write(msg + "\n")
            self._stream.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        try:
            if self._stream is not None:
                self._stream.close()
                self._stream = None
        finally:
            super().close()


def setup_logging(settings: Settings, *, log_dir: Path | str = "logs") -> None:
    """
    Configure the "dialogpro" logger once per process.

    Application records go to a daily file under `log_dir`; a console
    handler on the root logger keeps uvicorn and application output visible
    in the terminal.
    """
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    level = LOG_LEVELS.get(settings.logging_level, logging.ERROR)
    formatter = LocalTimezoneFormatter(
        "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        timezone_name=settings.log_timezone,
    )

    file_handler = DailyFileHandler(log_dir=Path(log_dir))
    file_handler.setFormatter(formatter)
    file_handler.addFilter(lambda record: record.name.startswith(LOGGER_NAME))

    app_logger = logging.getLogger(LOGGER_NAME)
    app_logger.setLevel(level)
    app_logger.propagate = True
    app_logger.addHandler(file_handler)

    root_logger = logging.getLogger()
    if not any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in root_logger.handlers
    ):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)
    if root_logger.level > level or root_logger.level == logging.NOTSET:
        root_logger.setLevel(level)

    _LOGGING_CONFIGURED = True


logger = logging.getLogger(LOGGER_NAME)
