"""Example SLI plugin: HTTP availability error ratio, 5xx and 429 as errors."""

from __future__ import annotations

import re
from typing import Mapping

SLI_PLUGIN_VERSION = "prometheus/v1"
SLI_PLUGIN_ID = "getting_started_availability"

_QUERY = (
    "\n"
    'sum(rate(http_request_duration_seconds_count{{ {filter}job="{job}",code=~"(5..|429)" }}[{{{{.window}}}}]))\n'
    "/\n"
    'sum(rate(http_request_duration_seconds_count{{ {filter}job="{job}" }}[{{{{.window}}}}]))'
)

_FILTER_RE = re.compile(r'([^=]+="[^=,"]+",)+')


class PluginError(ValueError):
    """Raised when the plugin options or labels are invalid."""


def _validate_labels(labels: Mapping[str, str], *required: str) -> None:
    for key in required:
        if not labels.get(key):
            raise PluginError(f'"{key}" label is required')


def sli_plugin(meta: Mapping[str, str], labels: Mapping[str, str], options: Mapping[str, str]) -> str:
    """Return the raw error ratio query for the ``job`` option."""
    if "job" not in options:
        raise PluginError("job options is required")
    job = options["job"]

    try:
        _validate_labels(labels, "owner", "tier")
    except PluginError as err:
        raise PluginError(f"invalid labels: {err}") from err

    flt = options.get("filter", "")
    if flt:
        flt = flt.strip("{}").strip(",") + ","
        if not _FILTER_RE.search(flt):
            raise PluginError(f"invalid prometheus filter: {flt}")

    return _QUERY.format(filter=flt, job=job)