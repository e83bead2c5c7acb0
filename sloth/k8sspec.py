"""Loading of Kubernetes ``PrometheusServiceLevel`` specs into the model."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Mapping, Protocol

import yaml

from sloth.k8smodel import (
    SLI,
    SLO,
    AlertMeta,
    K8sMeta,
    PromSLOGroup,
    SLIEvents,
    SLIRaw,
    SLOGroup,
    merge_labels,
)

API_VERSION = "sloth.slok.dev/v1"
KIND = "PrometheusServiceLevel"

META_SERVICE = "service"
META_SLO = "slo"
META_OBJECTIVE = "objective"

_KIND_RE = re.compile(r"^kind: +['\"]?PrometheusServiceLevel['\"]? *$", re.MULTILINE)
_API_RE = re.compile(r"^apiVersion: +['\"]?sloth.slok.dev/v1['\"]? *$", re.MULTILINE)


class SpecError(ValueError):
    """Raised when a spec cannot be loaded."""


@dataclass
class SLIPlugin:
    id: str
    func: Callable[[dict, dict, dict], str]


class SLIPluginRepo(Protocol):
    def get_sli_plugin(self, id: str) -> SLIPlugin: ...


def _map(value: Any) -> dict:
    return dict(value) if isinstance(value, dict) else {}


def _str_map(value: Any) -> dict[str, str]:
    return {str(k): "" if v is None else str(v) for k, v in _map(value).items()}


@dataclass
class _AlertSpec:
    disable: bool = False
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, data: Any) -> "_AlertSpec":
        d = _map(data)
        return cls(bool(d.get("disable", False)), _str_map(d.get("labels")), _str_map(d.get("annotations")))


@dataclass
class _SLOSpec:
    name: str = ""
    description: str = ""
    objective: float = 0.0
    labels: dict[str, str] = field(default_factory=dict)
    events: tuple[str, str] | None = None
    raw: str | None = None
    plugin_id: str | None = None
    plugin_options: dict[str, str] = field(default_factory=dict)
    alert_name: str = ""
    alert_labels: dict[str, str] = field(default_factory=dict)
    alert_annotations: dict[str, str] = field(default_factory=dict)
    page_alert: _AlertSpec = field(default_factory=_AlertSpec)
    ticket_alert: _AlertSpec = field(default_factory=_AlertSpec)

    @classmethod
    def parse(cls, data: Any) -> "_SLOSpec":
        d = _map(data)
        sli = _map(d.get("sli"))
        alerting = _map(d.get("alerting"))
        try:
            objective = float(d.get("objective") or 0)
        except (TypeError, ValueError) as err:
            raise SpecError(f"could not decode kubernetes object {err}") from err
        spec = cls(
            name=str(d.get("name") or ""),
            description=str(d.get("description") or ""),
            objective=objective,
            labels=_str_map(d.get("labels")),
            alert_name=str(alerting.get("name") or ""),
            alert_labels=_str_map(alerting.get("labels")),
            alert_annotations=_str_map(alerting.get("annotations")),
            page_alert=_AlertSpec.parse(alerting.get("pageAlert")),
            ticket_alert=_AlertSpec.parse(alerting.get("ticketAlert")),
        )
        if sli.get("events") is not None:
            ev = _map(sli["events"])
            spec.events = (str(ev.get("errorQuery") or ""), str(ev.get("totalQuery") or ""))
        if sli.get("raw") is not None:
            spec.raw = str(_map(sli["raw"]).get("errorRatioQuery") or "")
        if sli.get("plugin") is not None:
            pl = _map(sli["plugin"])
            spec.plugin_id = str(pl.get("id") or "")
            spec.plugin_options = _str_map(pl.get("options"))
        return spec


@dataclass
class _Status:
    observed_generation: int = 0
    prom_op_rules_generated: bool = False
    prom_op_rules_generated_slos: int = 0
    processed_slos: int = 0
    last_prom_op_rules_successful_generated: datetime | None = None


@dataclass
class PrometheusServiceLevel:
    """The ``PrometheusServiceLevel`` custom resource."""

    name: str = ""
    namespace: str = ""
    uid: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    generation: int = 0
    deletion_timestamp: datetime | None = None
    service: str = ""
    spec_labels: dict[str, str] = field(default_factory=dict)
    slos: list[_SLOSpec] = field(default_factory=list)
    status: _Status = field(default_factory=_Status)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PrometheusServiceLevel":
        meta = _map(data.get("metadata"))
        spec = _map(data.get("spec"))
        status = _map(data.get("status"))
        return cls(
            name=str(meta.get("name") or ""),
            namespace=str(meta.get("namespace") or ""),
            uid=str(meta.get("uid") or ""),
            labels=_str_map(meta.get("labels")),
            annotations=_str_map(meta.get("annotations")),
            generation=int(meta.get("generation") or 0),
            deletion_timestamp=meta.get("deletionTimestamp"),
            service=str(spec.get("service") or ""),
            spec_labels=_str_map(spec.get("labels")),
            slos=[_SLOSpec.parse(s) for s in spec.get("slos") or []],
            status=_Status(
                observed_generation=int(status.get("observedGeneration") or 0),
                prom_op_rules_generated=bool(status.get("promOpRulesGenerated", False)),
                prom_op_rules_generated_slos=int(status.get("promOpRulesGeneratedSLOs") or 0),
                processed_slos=int(status.get("processedSLOs") or 0),
                last_prom_op_rules_successful_generated=status.get("lastPromOpRulesSuccessfulGenerated"),
            ),
        )


def _text(data: str | bytes) -> str:
    return data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data


class YAMLSpecLoader:
    """Loads Kubernetes ``PrometheusServiceLevel`` YAML specs into the model."""

    def __init__(self, plugins_repo: SLIPluginRepo, window_period: timedelta):
        self._plugins_repo = plugins_repo
        self._window_period = window_period

    def is_spec_type(self, data: str | bytes) -> bool:
        text = _text(data)
        return bool(_KIND_RE.search(text) and _API_RE.search(text))

    def load_spec(self, data: str | bytes) -> SLOGroup:
        if not data:
            raise SpecError("spec is required")
        try:
            doc = yaml.safe_load(_text(data))
        except yaml.YAMLError as err:
            raise SpecError(f"could not decode kubernetes object {err}") from err
        if not isinstance(doc, dict) or not doc.get("kind") or not doc.get("apiVersion"):
            raise SpecError("could not decode kubernetes object: missing kind or apiVersion")
        if doc["kind"] != KIND or doc["apiVersion"] != API_VERSION:
            raise SpecError("can't type assert object to v1.PrometheusServiceLevel")
        kslo = PrometheusServiceLevel.from_mapping(doc)
        if not kslo.slos:
            raise SpecError("at least one SLO is required")
        try:
            return map_spec_to_model(self._window_period, self._plugins_repo, kslo)
        except SpecError as err:
            raise SpecError(f"could not map to model: {err}") from err


class CRSpecLoader:
    """Loads ``PrometheusServiceLevel`` custom resources into the model."""

    def __init__(self, plugins_repo: SLIPluginRepo, window_period: timedelta):
        self._plugins_repo = plugins_repo
        self._window_period = window_period

    def load_spec(self, spec: PrometheusServiceLevel) -> SLOGroup:
        return map_spec_to_model(self._window_period, self._plugins_repo, spec)


def _alert_meta(s: _SLOSpec, alert: _AlertSpec) -> AlertMeta:
    if alert.disable:
        return AlertMeta(disable=True)
    return AlertMeta(
        name=s.alert_name,
        labels=merge_labels(s.alert_labels, alert.labels),
        annotations=merge_labels(s.alert_annotations, alert.annotations),
    )


def map_spec_to_model(
    default_window_period: timedelta, plugins_repo: SLIPluginRepo, kspec: PrometheusServiceLevel
) -> SLOGroup:
    """Map a custom resource to a Kubernetes SLO group."""
    slos = []
    for s in kspec.slos:
        sli = SLI()
        if s.events is not None:
            sli.events = SLIEvents(error_query=s.events[0], total_query=s.events[1])
        if s.raw is not None:
            sli.raw = SLIRaw(error_ratio_query=s.raw)
        if s.plugin_id is not None:
            try:
                plugin = plugins_repo.get_sli_plugin(s.plugin_id)
            except Exception as err:
                raise SpecError(f"could not get plugin: {err}") from err
            meta = {META_SERVICE: kspec.service, META_SLO: s.name, META_OBJECTIVE: f"{s.objective:f}"}
            try:
                query = plugin.func(meta, dict(kspec.spec_labels), dict(s.plugin_options))
            except Exception as err:
                raise SpecError(f'plugin "{s.plugin_id}" execution error: {err}') from err
            sli.raw = SLIRaw(error_ratio_query=query)

        slos.append(
            SLO(
                id=f"{kspec.service}-{s.name}",
                name=s.name,
                description=s.description,
                service=kspec.service,
                sli=sli,
                time_window=default_window_period,
                objective=s.objective,
                labels=merge_labels(kspec.spec_labels, s.labels),
                page_alert_meta=_alert_meta(s, s.page_alert),
                ticket_alert_meta=_alert_meta(s, s.ticket_alert),
            )
        )

    return SLOGroup(
        k8s_meta=K8sMeta(
            kind=KIND,
            api_version=API_VERSION,
            uid=kspec.uid,
            name=kspec.name,
            namespace=kspec.namespace,
            labels=dict(kspec.labels),
            annotations=dict(kspec.annotations),
        ),
        slo_group=PromSLOGroup(slos=slos),
    )