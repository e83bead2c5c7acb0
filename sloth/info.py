"""Application and request information attached to generated SLOs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

VERSION = "dev"


class Mode(str, Enum):
    """How the SLO generation was triggered."""

    TEST = "test"
    CLI_GEN_PROMETHEUS = "cli-gen-prom"
    CLI_GEN_KUBERNETES = "cli-gen-k8s"
    CLI_GEN_OPENSLO = "cli-gen-openslo"
    CONTROLLER_GEN_KUBERNETES = "ctrl-gen-k8s"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Info:
    """Information of the app and the request, used as SLO metadata."""

    version: str = VERSION
    mode: Mode = Mode.TEST
    spec: str = ""