"""Multiwindow, multi-burn rate alert generation and SLO period windows."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from datetime import timedelta
from enum import IntEnum
from pathlib import Path
from typing import Iterator, Protocol

import yaml

from sloth.log import NOOP, Logger

ALERT_WINDOWS_API_VERSION = "sloth.slok.dev/v1"
ALERT_WINDOWS_KIND = "AlertWindows"

_DURATION_RE = re.compile(
    r"^(?:(\d+)y)?(?:(\d+)w)?(?:(\d+)d)?(?:(\d+)h)?(?:(\d+)m)?(?:(\d+)s)?(?:(\d+)ms)?$"
)
_HOUR_US = 3600 * 10**6


class WindowsError(Exception):
    """Raised for invalid, missing or conflicting alert windows."""


def parse_duration(text: str) -> timedelta:
    """Parse a Prometheus style duration such as ``30d`` or ``1h30m``."""
    if text == "0":
        return timedelta(0)
    if text == "":
        raise WindowsError("empty duration string")
    match = _DURATION_RE.match(text)
    if match is None:
        raise WindowsError(f"not a valid duration string: {text!r}")
    years, weeks, days, hours, minutes, seconds, millis = (int(g or 0) for g in match.groups())
    return timedelta(
        days=years * 365 + weeks * 7 + days,
        hours=hours,
        minutes=minutes,
        seconds=seconds,
        milliseconds=millis,
    )


def format_duration(td: timedelta) -> str:
    """Render a duration as ``720h0m0s`` style text."""
    us = td // timedelta(microseconds=1)
    if us == 0:
        return "0s"
    sign = "-" if us < 0 else ""
    us = abs(us)
    if us < 10**6:
        if us < 1000:
            return f"{sign}{us}µs"
        ms, rest = divmod(us, 1000)
        frac = f"{rest:03d}".rstrip("0")
        return f"{sign}{ms}.{frac}ms" if frac else f"{sign}{ms}ms"
    hours, rest = divmod(us, _HOUR_US)
    minutes, rest = divmod(rest, 60 * 10**6)
    secs, frac_us = divmod(rest, 10**6)
    sec_text = f"{secs}" + (f".{frac_us:06d}".rstrip("0") if frac_us else "") + "s"
    if hours:
        return f"{sign}{hours}h{minutes}m{sec_text}"
    if minutes:
        return f"{sign}{minutes}m{sec_text}"
    return sign + sec_text


def _hours(td: timedelta) -> float:
    us = td // timedelta(microseconds=1)
    hours, rest = divmod(us, _HOUR_US)
    return hours + rest / _HOUR_US


class Severity(IntEnum):
    UNKNOWN = 0
    PAGE = 1
    TICKET = 2

    def __str__(self) -> str:
        return {Severity.PAGE: "page", Severity.TICKET: "ticket"}.get(self, "unknown")


@dataclass(frozen=True)
class MWMBAlert:
    """A multiwindow, multi-burn rate alert."""

    id: str
    short_window: timedelta
    long_window: timedelta
    burn_rate_factor: float
    error_budget: float
    severity: Severity


@dataclass(frozen=True)
class MWMBAlertGroup:
    """The four alerts of an SLO: page/ticket, each quick and slow."""

    page_quick: MWMBAlert
    page_slow: MWMBAlert
    ticket_quick: MWMBAlert
    ticket_slow: MWMBAlert


@dataclass(frozen=True)
class SLO:
    id: str
    time_window: timedelta
    objective: float


@dataclass(frozen=True)
class Window:
    """One alerting window of the multiwindow-multiburn matrix."""

    error_budget_percent: float
    short_window: timedelta
    long_window: timedelta

    def validate(self) -> None:
        if not self.long_window:
            raise WindowsError("long window is required")
        if not self.short_window:
            raise WindowsError("short window is required")
        if self.error_budget_percent == 0:
            raise WindowsError("error budget is required")


@dataclass(frozen=True)
class Windows:
    """Windows for multiwindow-multiburn alerting of one SLO period."""

    slo_period: timedelta
    page_quick: Window
    page_slow: Window
    ticket_quick: Window
    ticket_slow: Window

    def validate(self) -> None:
        if not self.slo_period:
            raise WindowsError("slo period is required")
        for label, window in (
            ("page quick", self.page_quick),
            ("page slow", self.page_slow),
            ("ticket quick", self.ticket_quick),
            ("ticket slow", self.ticket_slow),
        ):
            try:
                window.validate()
            except WindowsError as err:
                raise WindowsError(f"invalid {label}: {err}") from err

    def _burn_rate_factor(self, window: Window) -> float:
        hours_required = float(window.error_budget_percent) * _hours(self.slo_period) / 100
        return hours_required / _hours(window.long_window)

    def speed_page_quick(self) -> float:
        return self._burn_rate_factor(self.page_quick)

    def speed_page_slow(self) -> float:
        return self._burn_rate_factor(self.page_slow)

    def speed_ticket_quick(self) -> float:
        return self._burn_rate_factor(self.ticket_quick)

    def speed_ticket_slow(self) -> float:
        return self._burn_rate_factor(self.ticket_slow)


def _section(mapping: dict, key: str) -> dict:
    value = mapping.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise WindowsError(f"could not unmarshall YAML spec correctly: {key!r} must be a mapping")
    return value


def _duration_field(mapping: dict, key: str) -> timedelta:
    value = mapping.get(key)
    if value is None:
        return timedelta(0)
    try:
        return parse_duration(str(value))
    except WindowsError as err:
        raise WindowsError(f"could not unmarshall YAML spec correctly: {err}") from err


def _window(mapping: dict) -> Window:
    try:
        percent = float(mapping.get("errorBudgetPercent") or 0)
    except (TypeError, ValueError) as err:
        raise WindowsError(f"could not unmarshall YAML spec correctly: {err}") from err
    return Window(
        error_budget_percent=percent,
        short_window=_duration_field(mapping, "shortWindow"),
        long_window=_duration_field(mapping, "longWindow"),
    )


def load_windows(data: str | bytes) -> Windows:
    """Load and validate an ``AlertWindows`` YAML document."""
    if not data:
        raise WindowsError("spec is required")
    try:
        doc = yaml.safe_load(data)
    except yaml.YAMLError as err:
        raise WindowsError(f"could not unmarshall YAML spec correctly: {err}") from err
    if not isinstance(doc, dict):
        raise WindowsError("could not unmarshall YAML spec correctly: document must be a mapping")
    if doc.get("apiVersion") != ALERT_WINDOWS_API_VERSION or doc.get("kind") != ALERT_WINDOWS_KIND:
        raise WindowsError("invalid spec version")

    spec = _section(doc, "spec")
    page = _section(spec, "page")
    ticket = _section(spec, "ticket")
    windows = Windows(
        slo_period=_duration_field(spec, "sloPeriod"),
        page_quick=_window(_section(page, "quick")),
        page_slow=_window(_section(page, "slow")),
        ticket_quick=_window(_section(ticket, "quick")),
        ticket_slow=_window(_section(ticket, "slow")),
    )
    try:
        windows.validate()
    except WindowsError as err:
        raise WindowsError(f"invalid alerting window: {err}") from err
    return windows


def _google_windows(days: int) -> Windows:
    # Defaults from the SRE workbook: 2%, 5%, 10% and 10% of the error budget.
    return Windows(
        slo_period=timedelta(days=days),
        page_quick=Window(2, timedelta(minutes=5), timedelta(hours=1)),
        page_slow=Window(5, timedelta(minutes=30), timedelta(hours=6)),
        ticket_quick=Window(10, timedelta(hours=2), timedelta(days=1)),
        ticket_slow=Window(10, timedelta(hours=6), timedelta(days=3)),
    )


DEFAULT_WINDOWS = (_google_windows(28), _google_windows(30))


def _walk(root: Path) -> Iterator[Path]:
    for entry in sorted(root.iterdir(), key=lambda p: p.name):
        if entry.is_dir():
            yield from _walk(entry)
        else:
            yield entry


class FSWindowsRepo:
    """Catalog of SLO period windows, loaded from a directory or the defaults."""

    def __init__(self, path: str | os.PathLike | None = None, logger: Logger | None = None):
        self._logger = (logger or NOOP).with_values({"svc": "alert.WindowsRepo"})
        self._windows: dict[timedelta, Windows] = {}

        if path is None:
            for windows in DEFAULT_WINDOWS:
                self._add(windows)
        else:
            self._logger.info("Using custom slo period windows catalog")
            try:
                self._load(Path(path))
            except WindowsError as err:
                raise WindowsError(f"could not initialize custom windows: {err}") from err

        self._logger.with_values({"windows": len(self._windows)}).info("SLO period windows loaded")

    def _load(self, root: Path) -> None:
        try:
            for file in _walk(root):
                if file.suffix not in (".yaml", ".yml"):
                    continue
                try:
                    data = file.read_bytes()
                except OSError as err:
                    raise WindowsError(f"could not read {str(file)!r} alert windows data from file: {err}") from err
                try:
                    windows = load_windows(data)
                except WindowsError as err:
                    raise WindowsError(f"could not load {str(file)!r} alert windows: {err}") from err
                self._add(windows)
        except (WindowsError, OSError) as err:
            raise WindowsError(f"could not discover period windows: {err}") from err

    def _add(self, windows: Windows) -> None:
        stored = self._windows.get(windows.slo_period)
        if stored is not None:
            label = format_duration(windows.slo_period)
            if stored != windows:
                raise WindowsError(f'"{label}" slo period is already loaded')
            self._logger.warning('Identical "%s" slo periods have been loaded multiple times', label)
            return
        self._windows[windows.slo_period] = windows

    def get_windows(self, period: timedelta) -> Windows:
        try:
            return self._windows[period]
        except KeyError:
            raise WindowsError(f"window period {format_duration(period)} missing") from None


class WindowsRepo(Protocol):
    def get_windows(self, period: timedelta) -> Windows: ...


class Generator:
    """Generates the multiwindow-multiburn alerts of an SLO."""

    def __init__(self, windows_repo: WindowsRepo):
        self._windows_repo = windows_repo

    def generate_mwmb_alerts(self, slo: SLO) -> MWMBAlertGroup:
        try:
            windows = self._windows_repo.get_windows(slo.time_window)
        except WindowsError as err:
            raise WindowsError(
                f"the {format_duration(slo.time_window)} SLO period time window is not supported"
            ) from err

        error_budget = 100 - slo.objective

        def make(suffix: str, window: Window, speed: float, severity: Severity) -> MWMBAlert:
            return MWMBAlert(
                id=f"{slo.id}-{suffix}",
                short_window=window.short_window,
                long_window=window.long_window,
                burn_rate_factor=speed,
                error_budget=error_budget,
                severity=severity,
            )

        return MWMBAlertGroup(
            page_quick=make("page-quick", windows.page_quick, windows.speed_page_quick(), Severity.PAGE),
            page_slow=make("page-slow", windows.page_slow, windows.speed_page_slow(), Severity.PAGE),
            ticket_quick=make("ticket-quick", windows.ticket_quick, windows.speed_ticket_quick(), Severity.TICKET),
            ticket_slow=make("ticket-slow", windows.ticket_slow, windows.speed_ticket_slow(), Severity.TICKET),
        )