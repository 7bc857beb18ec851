#!/usr/bin/env python3
"""
===============================================================================
                              AUTO UPDATER
===============================================================================
Version: 3.0.0

Unattended system updates for Linux hosts.

Features:
• Package manager detection (apt, apt-get, dnf, yum, pacman, zypper, apk)
• Update then cleanup cycle with fail-fast update and best-effort cleanup
• Recurring schedule via a systemd timer, or a crontab entry without systemd
• Run lock so manual and scheduled runs never overlap
• Append-only log file with a per-user fallback
"""

import argparse
import fcntl
import json
import logging
import os
import shlex
import subprocess
import sys

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from rich import box
from rich.align import Align
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text

__version__ = "3.0.0"

console = Console()
logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s: %(message)s"
DEFAULT_CONFIG_FILE = Path("/etc/auto-updater/config.json")
OS_RELEASE_FILE = Path("/etc/os-release")
ALPINE_RELEASE_FILE = Path("/etc/alpine-release")
APK_CACHE_DIR = Path("/var/cache/apk")
CRON_DAEMON_SCRIPTS = ("/etc/init.d/crond", "/etc/init.d/cron")


# ═══════════════════════════════════════════════════════════════════════════════
# ERRORS
# ═══════════════════════════════════════════════════════════════════════════════


class UpdaterError(Exception):
    """Base class for every failure reported to the user."""


class PrivilegeError(UpdaterError):
    pass


class NoSupportedBackend(UpdaterError):
    pass


class LogSinkUnavailable(UpdaterError):
    pass


class InvalidPeriod(UpdaterError):
    pass


class SchedulerInstallFailed(UpdaterError):
    pass


class RunLockBusy(UpdaterError):
    pass


class RunLockUnavailable(UpdaterError):
    pass


class CommandError(UpdaterError):
    """An external command could not be run or exited non-zero."""

    def __init__(self, cmd: Sequence[str], returncode: Optional[int], reason: str, output: str = ""):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.reason = reason
        self.output = output
        super().__init__(f"'{shlex.join(self.cmd)}' {reason}")


class StepFailed(UpdaterError):
    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class UpdateFailed(StepFailed):
    pass


class CleanupFailed(StepFailed):
    pass


# ═══════════════════════════════════════════════════════════════════════════════
# CORE DATA MODELS
# ═══════════════════════════════════════════════════════════════════════════════


class Backend(Enum):
    """Supported package managers."""

    APT = "apt"
    APT_LEGACY = "apt-get"
    DNF = "dnf"
    YUM = "yum"
    PACMAN = "pacman"
    ZYPPER = "zypper"
    APK = "apk"


# Detection priority: first executable probe wins, modern front-ends before legacy ones.
BACKEND_REGISTRY: Tuple[Tuple[Backend, str], ...] = (
    (Backend.APT, "/usr/bin/apt"),
    (Backend.APT_LEGACY, "/usr/bin/apt-get"),
    (Backend.DNF, "/usr/bin/dnf"),
    (Backend.YUM, "/usr/bin/yum"),
    (Backend.PACMAN, "/usr/bin/pacman"),
    (Backend.ZYPPER, "/usr/bin/zypper"),
    (Backend.APK, "/sbin/apk"),
)


class Period(Enum):
    """Recurrence of scheduled updates."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, text: Optional[str]) -> "Period":
        value = (text or "").strip().lower()
        for period in cls:
            if period.value == value:
                return period
        raise InvalidPeriod(
            f"Invalid frequency '{text}'. Must be daily, weekly, or monthly."
        )

    @property
    def calendar(self) -> str:
        return TIMER_CALENDARS[self]

    @property
    def cron(self) -> str:
        return CRON_EXPRESSIONS[self]


TIMER_CALENDARS = {
    Period.DAILY: "*-*-* 00:00:00",
    Period.WEEKLY: "Mon *-*-* 00:00:00",
    Period.MONTHLY: "*-*-01 00:00:00",
}

CRON_EXPRESSIONS = {
    Period.DAILY: "0 0 * * *",
    Period.WEEKLY: "0 0 * * 0",
    Period.MONTHLY: "0 0 1 * *",
}


@dataclass(frozen=True)
class Step:
    """One external command.

    A step with ``select_from`` first runs that query, feeds its output to
    ``select`` and appends the returned package names to ``argv``. Nothing
    selected means nothing to do, and the step is skipped.
    """

    argv: Tuple[str, ...]
    select_from: Optional[Tuple[str, ...]] = None
    select: Optional[Callable[[str], List[str]]] = None

    def describe(self) -> str:
        if self.select_from:
            return f"{shlex.join(self.argv)} <$({shlex.join(self.select_from)})>"
        return shlex.join(self.argv)


@dataclass(frozen=True)
class CommandSet:
    backend: Backend
    update: Tuple[Step, ...]
    cleanup: Tuple[Step, ...]


@dataclass(frozen=True)
class HostInfo:
    distro_id: str = "unknown"
    version: str = ""

    @property
    def label(self) -> str:
        return f"{self.distro_id} {self.version}".strip()


@dataclass
class ActionOutcome:
    ok: bool
    detail: str = ""
    returncode: Optional[int] = None


@dataclass
class RunResult:
    """Outcome of one update cycle. Only ever written to the log."""

    backend: Backend
    host: HostInfo
    update: ActionOutcome
    cleanup: Optional[ActionOutcome] = None
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.update.ok

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1


class ScheduleKind(Enum):
    TIMER = "systemd timer"
    CRON = "cron"


@dataclass
class ScheduleArtifact:
    kind: ScheduleKind
    period: Period
    command: str
    location: str
    definition: str
    created: bool = True


# ═══════════════════════════════════════════════════════════════════════════════
# CONFIGURATION SYSTEM
# ═══════════════════════════════════════════════════════════════════════════════


class UpdaterConfig:
    """Settings with built-in defaults, overridable from a JSON file."""

    def __init__(self, config_file: Optional[str] = None):
        self.config_file = Path(config_file) if config_file else DEFAULT_CONFIG_FILE

        self.settings = {
            "logging": {
                "file": "/var/log/auto-updater.log",
                "fallback_dir": "~/.auto-updater",
                "level": "INFO",
            },
            "execution": {
                "timeout_seconds": None,
                "lock_file": "/run/auto-updater.lock",
            },
            "schedule": {
                "unit_name": "auto-updater",
                "unit_dir": "/etc/systemd/system",
                "init_marker": "/run/systemd/system",
                "randomized_delay_seconds": 3600,
            },
        }
        self.load()

    def load(self):
        """Load configuration from file with error handling."""
        if not self.config_file.exists():
            return
        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                loaded_settings = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load config {self.config_file}: {e}")
            return
        if not isinstance(loaded_settings, dict):
            logger.warning(f"Ignoring config {self.config_file}: top level is not an object")
            return
        self._merge_settings(self.settings, loaded_settings)

    def _merge_settings(self, base: dict, loaded: dict, section: str = ""):
        """Recursively merge settings, keeping sections as sections."""
        for key, value in loaded.items():
            name = f"{section}{key}"
            if key in base and isinstance(base[key], dict) != isinstance(value, dict):
                logger.warning(f"Ignoring config key '{name}': expected {type(base[key]).__name__}")
            elif key in base and isinstance(base[key], dict):
                self._merge_settings(base[key], value, f"{name}.")
            else:
                base[key] = value


def setup_logging(settings: Dict) -> Path:
    """Attach the append-only log file, falling back to a per-user location.

    Returns the path actually in use.
    """
    log_settings = settings["logging"]
    level = getattr(logging, str(log_settings.get("level", "INFO")).upper(), logging.INFO)
    primary = Path(log_settings["file"])
    unavailable = None

    try:
        primary.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(primary, encoding="utf-8")
        log_path = primary
    except OSError as e:
        unavailable = e
        log_path = Path(log_settings["fallback_dir"]).expanduser() / primary.name
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(log_path, encoding="utf-8")
        except OSError as fallback_error:
            raise LogSinkUnavailable(
                f"Cannot open log file {primary} ({e}) or fallback {log_path} ({fallback_error})"
            ) from fallback_error

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=[handler], force=True)
    if unavailable is not None:
        logger.warning(f"Log file {primary} unavailable ({unavailable}), logging to {log_path}")
    return log_path


# ═══════════════════════════════════════════════════════════════════════════════
# UTILITY FUNCTIONS
# ═══════════════════════════════════════════════════════════════════════════════


def run_command(
    cmd: Sequence[str],
    timeout: Optional[float] = None,
    allow_failure: bool = False,
    input_text: Optional[str] = None,
) -> subprocess.CompletedProcess:
    """Execute command, capturing stdout and stderr together."""
    logger.debug(f"Running: {shlex.join(cmd)}")
    try:
        result = subprocess.run(
            list(cmd),
            input=input_text,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=False,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise CommandError(cmd, None, f"timed out after {timeout}s") from e
    except OSError as e:
        raise CommandError(cmd, None, f"could not be started: {e}") from e

    if result.returncode != 0 and not allow_failure:
        raise CommandError(cmd, result.returncode, f"exited {result.returncode}", result.stdout or "")
    return result


def require_root():
    if os.geteuid() != 0:
        raise PrivilegeError("auto-updater must be run as root")


def _read_key_values(path: Path) -> Dict[str, str]:
    values = {}
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            values[key.strip()] = value.strip().strip("\"'")
    return values


def read_host_info(
    os_release: Optional[Path] = None, alpine_release: Optional[Path] = None
) -> HostInfo:
    """Identify the distribution from os-release, or Alpine's release file."""
    os_release = Path(os_release or OS_RELEASE_FILE)
    alpine_release = Path(alpine_release or ALPINE_RELEASE_FILE)
    try:
        if os_release.is_file():
            values = _read_key_values(os_release)
            return HostInfo(values.get("ID", "unknown"), values.get("VERSION_ID", ""))
        if alpine_release.is_file():
            return HostInfo("alpine", alpine_release.read_text(encoding="utf-8", errors="replace").strip())
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read distribution info: {e}")
    return HostInfo()


def resolve_executable() -> List[str]:
    """Command line that re-invokes this program from a schedule."""
    script = Path(sys.argv[0]).resolve()
    if script.suffix == ".py":
        return [sys.executable, str(script)]
    return [str(script)]


class RunLock:
    """Exclusive, non-blocking lock held for the length of an update cycle."""

    def __init__(self, path):
        self.path = Path(path)
        self._file = None

    def __enter__(self):
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.path, "a+", encoding="utf-8")
        except OSError as e:
            raise RunLockUnavailable(f"Cannot open lock file {self.path}: {e}") from e
        try:
            fcntl.flock(self._file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            self._file.close()
            self._file = None
            raise RunLockBusy(f"Another update is already running (lock {self.path})") from e
        self._file.truncate(0)
        self._file.write(f"{os.getpid()}\n")
        self._file.flush()
        return self

    def __exit__(self, *args):
        if self._file:
            fcntl.flock(self._file.fileno(), fcntl.LOCK_UN)
            self._file.close()
            self._file = None


# ═══════════════════════════════════════════════════════════════════════════════
# BACKEND DETECTION
# ═══════════════════════════════════════════════════════════════════════════════


def detect(registry: Optional[Sequence[Tuple[Backend, str]]] = None) -> Backend:
    """Return the first backend whose probe path is an executable file."""
    if registry is None:
        registry = BACKEND_REGISTRY
    for backend, probe in registry:
        if os.path.isfile(probe) and os.access(probe, os.X_OK):
            logger.debug(f"Detected {backend.value} via {probe}")
            return backend
    raise NoSupportedBackend("No supported package manager found")


# ═══════════════════════════════════════════════════════════════════════════════
# COMMAND MAPPING
# ═══════════════════════════════════════════════════════════════════════════════


def _orphan_names(output: str) -> List[str]:
    return [line.strip() for line in output.splitlines() if line.strip()]


def _zypper_unneeded(output: str) -> List[str]:
    # "i | repo | name | version | arch" rows; name is the third column
    names = []
    for line in output.splitlines():
        if not line.startswith("i"):
            continue
        columns = line.split("|")
        if len(columns) >= 3 and columns[2].strip():
            names.append(columns[2].strip())
    return names


def commands_for(backend: Backend) -> CommandSet:
    """Map a backend to its update and cleanup steps."""
    if backend in (Backend.APT, Backend.APT_LEGACY):
        pm = backend.value
        refresh = (pm, "update") if backend == Backend.APT else (pm, "update", "-y")
        return CommandSet(
            backend,
            update=(Step(refresh), Step((pm, "upgrade", "-y"))),
            cleanup=(Step((pm, "autoremove", "-y")), Step((pm, "clean"))),
        )

    if backend in (Backend.DNF, Backend.YUM):
        pm = backend.value
        return CommandSet(
            backend,
            update=(Step((pm, "upgrade", "-y")),),
            cleanup=(Step((pm, "autoremove", "-y")),),
        )

    if backend == Backend.PACMAN:
        return CommandSet(
            backend,
            update=(Step(("pacman", "-Syu", "--noconfirm")),),
            cleanup=(
                Step(
                    ("pacman", "-Rns", "--noconfirm"),
                    select_from=("pacman", "-Qtdq"),
                    select=_orphan_names,
                ),
            ),
        )

    if backend == Backend.ZYPPER:
        return CommandSet(
            backend,
            update=(Step(("zypper", "refresh")), Step(("zypper", "update", "-y"))),
            cleanup=(
                Step(
                    ("zypper", "remove", "-y"),
                    select_from=("zypper", "packages", "--unneeded"),
                    select=_zypper_unneeded,
                ),
            ),
        )

    if backend == Backend.APK:
        # apk cache clean fails without an existing cache directory
        APK_CACHE_DIR.mkdir(parents=True, exist_ok=True)
        return CommandSet(
            backend,
            update=(Step(("apk", "update")), Step(("apk", "upgrade"))),
            cleanup=(Step(("apk", "cache", "clean")),),
        )

    raise ValueError(f"No commands defined for backend {backend!r}")


# ═══════════════════════════════════════════════════════════════════════════════
# UPDATE EXECUTOR
# ═══════════════════════════════════════════════════════════════════════════════


class UpdateExecutor:
    """Runs one update cycle: update must succeed, cleanup is best effort."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def run(self, command_set: CommandSet, host: HostInfo) -> RunResult:
        result = RunResult(
            backend=command_set.backend,
            host=host,
            update=ActionOutcome(False),
        )
        logger.info(f"=== Starting system update ({host.label}) ===")
        logger.info(f"Using package manager: {command_set.backend.value}")

        try:
            self._run_action(command_set.update, UpdateFailed)
        except UpdateFailed as e:
            logger.error(f"Update failed: {e}")
            result.update = ActionOutcome(False, str(e), e.returncode)
            result.finished_at = datetime.now()
            return result
        result.update = ActionOutcome(True, f"{len(command_set.update)} step(s) succeeded", 0)

        try:
            self._run_action(command_set.cleanup, CleanupFailed)
            result.cleanup = ActionOutcome(True, f"{len(command_set.cleanup)} step(s) succeeded", 0)
        except CleanupFailed as e:
            logger.warning(f"Cleanup failed: {e}")
            result.cleanup = ActionOutcome(False, str(e), e.returncode)

        result.finished_at = datetime.now()
        logger.info("=== System update completed successfully ===")
        return result

    def _run_action(self, steps: Sequence[Step], failure: type):
        for step in steps:
            try:
                self._run_step(step)
            except CommandError as e:
                self._log_output(e.output)
                console.print(f"[red]❌[/red] {escape(step.describe())}")
                raise failure(str(e), e.returncode) from e
            console.print(f"[green]✅[/green] {escape(step.describe())}")

    def _run_step(self, step: Step):
        argv = list(step.argv)
        if step.select_from:
            query = run_command(step.select_from, timeout=self.timeout, allow_failure=True)
            selected = step.select(query.stdout or "") if query.returncode == 0 else []
            if not selected:
                logger.info(f"Nothing selected for: {step.describe()}")
                return
            argv.extend(selected)

        logger.info(f"Running: {shlex.join(argv)}")
        result = run_command(argv, timeout=self.timeout)
        self._log_output(result.stdout)

    @staticmethod
    def _log_output(output: Optional[str]):
        for line in (output or "").splitlines():
            if line.strip():
                logger.info(f"  {line}")


# ═══════════════════════════════════════════════════════════════════════════════
# SCHEDULER INSTALLER
# ═══════════════════════════════════════════════════════════════════════════════


SERVICE_TEMPLATE = """\
[Unit]
Description=Automatic System Updater
After=network.target

[Service]
Type=oneshot
ExecStart={exec_start}
User=root
WorkingDirectory={working_dir}
StandardOutput=append:{log_path}
StandardError=append:{log_path}

[Install]
WantedBy=multi-user.target
"""

TIMER_TEMPLATE = """\
[Unit]
Description=Run auto-updater {period}

[Timer]
OnCalendar={calendar}
AccuracySec=1h
Persistent=true
RandomizedDelaySec={delay}

[Install]
WantedBy=timers.target
"""


def _invokes_run(entry: str, program: str) -> bool:
    """True when a crontab line runs ``program --run``."""
    try:
        tokens = shlex.split(entry, comments=True)
    except ValueError:
        tokens = entry.split()
    return any(
        Path(token).name == program and following == "--run"
        for token, following in zip(tokens, tokens[1:])
    )


class SchedulerInstaller:
    """Installs a systemd timer when systemd is running, a crontab entry otherwise."""

    def __init__(
        self,
        log_path: Path,
        unit_name: str = "auto-updater",
        unit_dir: str = "/etc/systemd/system",
        init_marker: str = "/run/systemd/system",
        randomized_delay: int = 3600,
        cron_daemon_scripts: Optional[Sequence[str]] = None,
    ):
        self.log_path = Path(log_path)
        self.unit_name = unit_name
        self.unit_dir = Path(unit_dir)
        self.init_marker = Path(init_marker)
        self.randomized_delay = randomized_delay
        self.cron_daemon_scripts = tuple(cron_daemon_scripts or CRON_DAEMON_SCRIPTS)

    @classmethod
    def from_settings(cls, settings: Dict, log_path: Path) -> "SchedulerInstaller":
        schedule = settings["schedule"]
        return cls(
            log_path,
            unit_name=schedule["unit_name"],
            unit_dir=schedule["unit_dir"],
            init_marker=schedule["init_marker"],
            randomized_delay=int(schedule["randomized_delay_seconds"]),
        )

    @property
    def uses_systemd(self) -> bool:
        return self.init_marker.is_dir()

    def install(self, period: Period, command: Sequence[str]) -> ScheduleArtifact:
        if self.uses_systemd:
            return self._install_timer(period, command)
        return self._install_cron(period, command)

    def render_service(self, command: Sequence[str]) -> str:
        return SERVICE_TEMPLATE.format(
            exec_start=shlex.join([*command, "--run"]),
            working_dir=Path(command[-1]).parent,
            log_path=self.log_path,
        )

    def render_timer(self, period: Period) -> str:
        return TIMER_TEMPLATE.format(
            period=period.value,
            calendar=period.calendar,
            delay=self.randomized_delay,
        )

    def render_cron_line(self, period: Period, command: Sequence[str]) -> str:
        run = shlex.join([*command, "--run"])
        return f"{period.cron} {run} >> {shlex.quote(str(self.log_path))} 2>&1"

    def _install_timer(self, period: Period, command: Sequence[str]) -> ScheduleArtifact:
        service_file = self.unit_dir / f"{self.unit_name}.service"
        timer_file = self.unit_dir / f"{self.unit_name}.timer"
        try:
            self.unit_dir.mkdir(parents=True, exist_ok=True)
            service_file.write_text(self.render_service(command), encoding="utf-8")
            timer_file.write_text(self.render_timer(period), encoding="utf-8")
        except OSError as e:
            raise SchedulerInstallFailed(f"Cannot write systemd units in {self.unit_dir}: {e}") from e
        logger.info(f"Wrote {service_file} and {timer_file}")

        try:
            run_command(["systemctl", "daemon-reload"])
            run_command(["systemctl", "enable", "--now", timer_file.name])
        except CommandError as e:
            logger.error(e.output.strip() or str(e))
            raise SchedulerInstallFailed(f"systemd timer not enabled: {e}") from e

        logger.info(f"Enabled {timer_file.name} ({period.value}, OnCalendar={period.calendar})")
        return ScheduleArtifact(
            kind=ScheduleKind.TIMER,
            period=period,
            command=shlex.join([*command, "--run"]),
            location=str(timer_file),
            definition=f"OnCalendar={period.calendar}",
        )

    def _install_cron(self, period: Period, command: Sequence[str]) -> ScheduleArtifact:
        line = self.render_cron_line(period, command)
        marker = Path(command[-1]).name

        try:
            current = run_command(["crontab", "-l"], allow_failure=True)
        except CommandError as e:
            raise SchedulerInstallFailed(f"Cannot read crontab: {e}") from e
        # crontab -l exits non-zero when the user has no crontab yet
        existing = current.stdout if current.returncode == 0 else ""
        entries = [entry for entry in existing.splitlines() if _invokes_run(entry, marker)]

        if entries:
            if entries[0] != line:
                logger.warning(
                    f"Keeping existing crontab entry '{entries[0]}'; remove it to change the schedule"
                )
            else:
                logger.info("Crontab entry already present")
            artifact = ScheduleArtifact(
                kind=ScheduleKind.CRON,
                period=period,
                command=shlex.join([*command, "--run"]),
                location="crontab",
                definition=entries[0],
                created=False,
            )
        else:
            body = existing if not existing or existing.endswith("\n") else existing + "\n"
            try:
                run_command(["crontab", "-"], input_text=f"{body}{line}\n")
            except CommandError as e:
                raise SchedulerInstallFailed(f"Cannot write crontab: {e}") from e
            logger.info(f"Added crontab entry: {line}")
            artifact = ScheduleArtifact(
                kind=ScheduleKind.CRON,
                period=period,
                command=shlex.join([*command, "--run"]),
                location="crontab",
                definition=line,
            )

        self._ensure_cron_daemon()
        return artifact

    def _ensure_cron_daemon(self):
        """Start the cron daemon from its init script, if one exists."""
        for script in self.cron_daemon_scripts:
            if not os.path.isfile(script):
                continue
            try:
                run_command([script, "start"])
                logger.info(f"Started cron daemon via {script}")
            except CommandError as e:
                logger.warning(f"Could not start cron daemon: {e}")
            return
        logger.info("No cron init script found; assuming cron is managed elsewhere")


# ═══════════════════════════════════════════════════════════════════════════════
# ENHANCED UI SYSTEM
# ═══════════════════════════════════════════════════════════════════════════════


class UISystem:
    """Console output for interactive installs."""

    @staticmethod
    def display_banner(host: HostInfo, backend: Backend, log_path: Path):
        """Show application banner."""
        banner_text = Text()
        banner_text.append("╔══════════════════════════════════════╗\n", style="bold blue")
        banner_text.append("║             AUTO UPDATER             ║\n", style="bold white on blue")
        banner_text.append(f"║{('Version ' + __version__):^38}║\n", style="bold blue")
        banner_text.append("╚══════════════════════════════════════╝\n", style="bold blue")
        console.print(Align.center(banner_text))

        info_table = Table.grid(padding=1)
        info_table.add_column(justify="right", style="cyan")
        info_table.add_column(style="white")
        info_table.add_row("🖥️  System:", host.label)
        info_table.add_row("📦 Package manager:", backend.value)
        info_table.add_row("📝 Log:", str(log_path))

        console.print(
            Panel(
                info_table,
                title="[bold green]Detected System[/bold green]",
                border_style="green",
                box=box.ROUNDED,
                padding=(1, 2),
            )
        )

    @staticmethod
    def ask_period(default: Optional[str] = None) -> Period:
        if default is not None:
            return Period.parse(default)
        try:
            answer = Prompt.ask(
                "Choose update frequency ([cyan]daily[/cyan]/[cyan]weekly[/cyan]/[cyan]monthly[/cyan])",
                console=console,
            )
        except EOFError:
            answer = ""
        return Period.parse(answer)

    @staticmethod
    def show_run_result(result: RunResult):
        if result.success:
            console.print(f"[bold green]🎉 System updated ({result.backend.value})[/bold green]")
            if result.cleanup and not result.cleanup.ok:
                console.print(f"[yellow]⚠️  Cleanup failed: {escape(result.cleanup.detail)}[/yellow]")
        else:
            console.print(f"[bold red]ERROR: {escape(result.update.detail)}[/bold red]")

    @staticmethod
    def create_install_summary(artifact: ScheduleArtifact, log_path: Path) -> Panel:
        table = Table.grid(padding=1)
        table.add_column(justify="right", style="cyan")
        table.add_column(style="white")
        table.add_row("⏰ Mechanism:", artifact.kind.value)
        table.add_row("🔁 Frequency:", artifact.period.value)
        table.add_row("📍 Location:", artifact.location)
        table.add_row("🧾 Definition:", escape(artifact.definition))
        if not artifact.created:
            table.add_row("ℹ️  Note:", "existing entry kept")
        table.add_row("📝 Logging to:", str(log_path))

        return Panel(
            table,
            title="[bold blue]✅ Installation complete[/bold blue]",
            border_style="blue",
            box=box.ROUNDED,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# MAIN APPLICATION
# ═══════════════════════════════════════════════════════════════════════════════


class AutoUpdaterApp:
    """Main application controller."""

    def __init__(self, config: UpdaterConfig):
        self.config = config
        self.ui = UISystem()
        self.executor = UpdateExecutor(config.settings["execution"]["timeout_seconds"])
        self.log_path: Optional[Path] = None

    def _prepare(self) -> Tuple[HostInfo, CommandSet]:
        require_root()
        self.log_path = setup_logging(self.config.settings)
        host = read_host_info()
        backend = detect()
        return host, commands_for(backend)

    def _update_cycle(self, command_set: CommandSet, host: HostInfo) -> RunResult:
        with RunLock(self.config.settings["execution"]["lock_file"]):
            result = self.executor.run(command_set, host)
        self.ui.show_run_result(result)
        return result

    def run_once(self) -> int:
        """Perform exactly one update cycle; exit status follows the update action."""
        host, command_set = self._prepare()
        return self._update_cycle(command_set, host).exit_code

    def install(self, period: Optional[str] = None) -> int:
        """Run an initial update and install the recurring schedule."""
        host, command_set = self._prepare()
        logger.info(f"=== Auto Updater v{__version__} ===")
        logger.info(f"Detected system: {host.label}, package manager: {command_set.backend.value}")
        self.ui.display_banner(host, command_set.backend, self.log_path)

        chosen = self.ui.ask_period(period)
        logger.info(f"Update frequency: {chosen.value}")

        try:
            result = self._update_cycle(command_set, host)
            if not result.success:
                logger.warning("Initial update failed; installing schedule anyway")
        except (RunLockBusy, RunLockUnavailable) as e:
            logger.error(f"Initial update skipped: {e}")
            console.print(f"[yellow]⚠️  Initial update skipped: {escape(str(e))}[/yellow]")

        installer = SchedulerInstaller.from_settings(self.config.settings, self.log_path)
        artifact = installer.install(chosen, resolve_executable())
        console.print(self.ui.create_install_summary(artifact, self.log_path))
        logger.info(f"Installed {artifact.kind.value} schedule: {artifact.definition}")
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="auto-updater",
        description="Auto Updater - unattended package updates for Linux hosts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  sudo auto-updater                      # Update now and install a schedule
  sudo auto-updater --period weekly      # Same, without the prompt
  sudo auto-updater --run                # One update cycle (used by the schedule)
  sudo auto-updater --run --timeout 1800 # Give each command at most 30 minutes
        """,
    )
    parser.add_argument(
        "--run", action="store_true", help="Run one update cycle and exit"
    )
    parser.add_argument(
        "--period", help="Update frequency for install (daily, weekly, monthly)"
    )
    parser.add_argument(
        "--timeout", type=float, help="Timeout in seconds for each package manager command"
    )
    parser.add_argument(
        "--config", help=f"Configuration file (default: {DEFAULT_CONFIG_FILE})"
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Application entry point."""
    args = build_parser().parse_args(argv)

    config = UpdaterConfig(args.config)
    if args.timeout is not None:
        config.settings["execution"]["timeout_seconds"] = args.timeout

    app = AutoUpdaterApp(config)
    try:
        if args.run:
            return app.run_once()
        return app.install(args.period)
    except UpdaterError as e:
        if app.log_path is not None:
            logger.error(str(e))
        console.print(f"[bold red]ERROR: {escape(str(e))}[/bold red]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
