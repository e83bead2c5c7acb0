"""SLO model for Prometheus rules and its Kubernetes flavoured group."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Mapping


class ValidationError(ValueError):
    """Raised when a model does not pass validation."""


def merge_labels(*args: Mapping[str, str] | None) -> dict[str, str]:
    """Merge label maps; later maps win on key conflicts."""
    res: dict[str, str] = {}
    for labels in args:
        if labels:
            res.update(labels)
    return res


def _fail(path: str, name: str, tag: str) -> ValidationError:
    return ValidationError(f"Key: '{path}' Error:Field validation for '{name}' failed on the '{tag}' tag")


@dataclass
class SLIEvents:
    error_query: str = ""
    total_query: str = ""


@dataclass
class SLIRaw:
    error_ratio_query: str = ""


@dataclass
class SLI:
    events: SLIEvents | None = None
    raw: SLIRaw | None = None


@dataclass
class AlertMeta:
    disable: bool = False
    name: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)


@dataclass
class SLO:
    id: str = ""
    name: str = ""
    description: str = ""
    service: str = ""
    sli: SLI = field(default_factory=SLI)
    time_window: timedelta = timedelta(0)
    objective: float = 0.0
    labels: dict[str, str] = field(default_factory=dict)
    page_alert_meta: AlertMeta = field(default_factory=AlertMeta)
    ticket_alert_meta: AlertMeta = field(default_factory=AlertMeta)


@dataclass
class Rule:
    """A Prometheus recording or alerting rule."""

    record: str = ""
    alert: str = ""
    expr: str = ""
    for_: timedelta = timedelta(0)
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)


@dataclass
class SLORules:
    sli_error_rec_rules: list[Rule] = field(default_factory=list)
    metadata_rec_rules: list[Rule] = field(default_factory=list)
    alert_rules: list[Rule] = field(default_factory=list)


@dataclass
class PromSLOGroup:
    slos: list[SLO] = field(default_factory=list)

    def validate(self) -> None:
        if not self.slos:
            raise _fail("SLOGroup.SLOs", "SLOs", "required")
        for i, slo in enumerate(self.slos):
            prefix = f"SLOGroup.SLOs[{i}]"
            for attr, name in (("id", "ID"), ("name", "Name"), ("service", "Service")):
                if not getattr(slo, attr):
                    raise _fail(f"{prefix}.{name}", name, "required")
            if not slo.time_window:
                raise _fail(f"{prefix}.TimeWindow", "TimeWindow", "required")
            if not slo.objective > 0:
                raise _fail(f"{prefix}.Objective", "Objective", "gt")
            if slo.objective > 100:
                raise _fail(f"{prefix}.Objective", "Objective", "lte")
            if (slo.sli.events is None) == (slo.sli.raw is None):
                raise _fail(f"{prefix}.SLI", "SLI", "required")


@dataclass
class K8sMeta:
    kind: str = ""
    api_version: str = ""
    name: str = ""
    uid: str = ""
    namespace: str = ""
    annotations: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        for attr, name in (("kind", "Kind"), ("api_version", "APIVersion"), ("name", "Name")):
            if not getattr(self, attr):
                raise _fail(f"K8sMeta.{name}", name, "required")


@dataclass
class SLOGroup:
    """A Kubernetes SLO group: Kubernetes metadata plus the SLOs."""

    k8s_meta: K8sMeta = field(default_factory=K8sMeta)
    slo_group: PromSLOGroup = field(default_factory=PromSLOGroup)

    @property
    def slos(self) -> list[SLO]:
        return self.slo_group.slos

    def validate(self) -> None:
        self.k8s_meta.validate()
        self.slo_group.validate()