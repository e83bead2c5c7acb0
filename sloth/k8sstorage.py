"""Storage of SLO rules as Prometheus operator ``PrometheusRule`` objects."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Protocol, TextIO

import yaml

from sloth.info import VERSION
from sloth.k8smodel import SLO, K8sMeta, Rule, SLORules
from sloth.log import NOOP, Logger


class StorageError(Exception):
    """Raised when SLO rules cannot be stored."""


class NoSLORulesError(StorageError):
    """Raised when there are no rules to store."""


@dataclass
class StorageSLO:
    slo: SLO = field(default_factory=SLO)
    rules: SLORules = field(default_factory=SLORules)


class PrometheusRulesEnsurer(Protocol):
    def ensure_prometheus_rule(self, rule: dict) -> None: ...


_DISCLAIMER = f"\n---\n# Code generated by Sloth ({VERSION}).\n# DO NOT EDIT.\n\n"

_UNITS = (("y", 365 * 86400000), ("w", 7 * 86400000), ("d", 86400000), ("h", 3600000), ("m", 60000), ("s", 1000), ("ms", 1))


def _prom_duration(td: timedelta) -> str:
    ms = td // timedelta(milliseconds=1)
    if ms == 0:
        return "0s"
    parts = []
    for unit, size in _UNITS:
        n, ms = divmod(ms, size)
        if n:
            parts.append(f"{n}{unit}")
    return "".join(parts)


def _kube_rules(rules: list[Rule]) -> list[dict]:
    res = []
    for r in rules:
        d: dict[str, Any] = {}
        if r.record:
            d["record"] = r.record
        if r.alert:
            d["alert"] = r.alert
        d["expr"] = r.expr
        if r.for_:
            d["for"] = _prom_duration(r.for_)
        if r.labels:
            d["labels"] = dict(r.labels)
        if r.annotations:
            d["annotations"] = dict(r.annotations)
        res.append(d)
    return res


def map_model_to_prometheus_operator(kmeta: K8sMeta, slos: list[StorageSLO]) -> dict:
    """Build the ``PrometheusRule`` object for the SLOs' rules."""
    labels = {"app.kubernetes.io/component": "SLO", "app.kubernetes.io/managed-by": "sloth", **kmeta.labels}
    metadata: dict[str, Any] = {"creationTimestamp": None, "labels": labels}
    if kmeta.name:
        metadata["name"] = kmeta.name
    if kmeta.namespace:
        metadata["namespace"] = kmeta.namespace
    if kmeta.annotations:
        metadata["annotations"] = dict(kmeta.annotations)

    if not slos:
        raise StorageError("slo rules required")

    groups = []
    for s in slos:
        for prefix, rules in (
            ("sloth-slo-sli-recordings", s.rules.sli_error_rec_rules),
            ("sloth-slo-meta-recordings", s.rules.metadata_rec_rules),
            ("sloth-slo-alerts", s.rules.alert_rules),
        ):
            if rules:
                groups.append({"name": f"{prefix}-{s.slo.id}", "rules": _kube_rules(rules)})

    if not groups:
        raise NoSLORulesError("0 SLO Prometheus rules generated")

    return {
        "apiVersion": "monitoring.coreos.com/v1",
        "kind": "PrometheusRule",
        "metadata": metadata,
        "spec": {"groups": groups},
    }


def _map(kmeta: K8sMeta, slos: list[StorageSLO]) -> dict:
    try:
        return map_model_to_prometheus_operator(kmeta, slos)
    except StorageError as err:
        raise type(err)(f"could not map model to Prometheus operator CR: {err}") from err


class IOWriterPrometheusOperatorYAMLRepo:
    """Writes SLO rules as a Prometheus operator YAML document."""

    def __init__(self, writer: TextIO, logger: Logger | None = None):
        self._writer = writer
        self._logger = (logger or NOOP).with_values({"svc": "storage.IOWriter", "format": "k8s-prometheus-operator"})

    def store_slos(self, kmeta: K8sMeta, slos: list[StorageSLO]) -> None:
        rule = _map(kmeta, slos)
        body = yaml.safe_dump(rule, sort_keys=True, default_flow_style=False, allow_unicode=True, width=1 << 30)
        try:
            self._writer.write(_DISCLAIMER + body)
        except OSError as err:
            raise StorageError(f"could not write top disclaimer: {err}") from err


class PrometheusOperatorCRDRepo:
    """Stores SLO rules as a ``PrometheusRule`` through an ensurer (API server)."""

    def __init__(self, ensurer: PrometheusRulesEnsurer, logger: Logger | None = None):
        self._ensurer = ensurer
        self._logger = (logger or NOOP).with_values(
            {"svc": "storage.PrometheusOperatorCRDAPIServer", "format": "k8s-prometheus-operator"}
        )

    def store_slos(self, kmeta: K8sMeta, slos: list[StorageSLO]) -> None:
        rule = _map(kmeta, slos)
        rule["metadata"]["ownerReferences"] = [
            {"kind": kmeta.kind, "apiVersion": kmeta.api_version, "name": kmeta.name, "uid": kmeta.uid}
        ]
        try:
            self._ensurer.ensure_prometheus_rule(rule)
        except Exception as err:
            raise StorageError(f"could not ensure Prometheus operator rule CR: {err}") from err