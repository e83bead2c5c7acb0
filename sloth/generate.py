"""Application service that generates the Prometheus rules of SLO groups."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Protocol

from sloth.alert import SLO as AlertSLO
from sloth.alert import MWMBAlertGroup
from sloth.info import Info
from sloth.k8smodel import SLO, PromSLOGroup, Rule, SLORules, merge_labels
from sloth.log import NOOP, Logger


class GenerateError(Exception):
    """Raised when the SLO rules cannot be generated."""


class AlertGenerator(Protocol):
    def generate_mwmb_alerts(self, slo: AlertSLO) -> MWMBAlertGroup: ...


class SLIRecordingRulesGenerator(Protocol):
    def generate_sli_recording_rules(self, slo: SLO, alerts: MWMBAlertGroup) -> list[Rule]: ...


class MetadataRecordingRulesGenerator(Protocol):
    def generate_metadata_recording_rules(self, info: Info, slo: SLO, alerts: MWMBAlertGroup) -> list[Rule]: ...


class SLOAlertRulesGenerator(Protocol):
    def generate_slo_alert_rules(self, slo: SLO, alerts: MWMBAlertGroup) -> list[Rule]: ...


class _DisabledRulesGenerator:
    """Base for generators of a disabled rule kind: they report the skip and yield no rules."""

    kind = "rules"

    def __init__(self, logger: Logger | None = None):
        self._logger = logger or NOOP

    def _skip(self, slo: SLO) -> list[Rule]:
        self._logger.with_values({"slo": slo.id}).debug("%s generation disabled", self.kind)
        return []


class NoopSLIRecordingRulesGenerator(_DisabledRulesGenerator):
    """SLI recording rules generator that generates nothing."""

    kind = "SLI recording rules"

    def generate_sli_recording_rules(self, slo: SLO, alerts: MWMBAlertGroup) -> list[Rule]:
        return self._skip(slo)


class NoopMetadataRecordingRulesGenerator(_DisabledRulesGenerator):
    """Metadata recording rules generator that generates nothing."""

    kind = "Metadata recording rules"

    def generate_metadata_recording_rules(self, info: Info, slo: SLO, alerts: MWMBAlertGroup) -> list[Rule]:
        return self._skip(slo)


class NoopSLOAlertRulesGenerator(_DisabledRulesGenerator):
    """SLO alert rules generator that generates nothing."""

    kind = "SLO alert rules"

    def generate_slo_alert_rules(self, slo: SLO, alerts: MWMBAlertGroup) -> list[Rule]:
        return self._skip(slo)


@dataclass
class Request:
    """What to generate: the SLOs plus execution metadata and extra labels."""

    info: Info = field(default_factory=Info)
    extra_labels: dict[str, str] = field(default_factory=dict)
    slo_group: PromSLOGroup = field(default_factory=PromSLOGroup)


@dataclass
class SLOResult:
    slo: SLO
    alerts: MWMBAlertGroup
    slo_rules: SLORules


@dataclass
class Response:
    prometheus_slos: list[SLOResult] = field(default_factory=list)


class Service:
    """Generates alerts and Prometheus rules for every SLO of a group."""

    def __init__(
        self,
        alert_generator: AlertGenerator | None,
        sli_recording_rules_generator: SLIRecordingRulesGenerator | None = None,
        meta_recording_rules_generator: MetadataRecordingRulesGenerator | None = None,
        slo_alert_rules_generator: SLOAlertRulesGenerator | None = None,
        logger: Logger | None = None,
    ):
        missing = [
            name
            for name, value in (
                ("alert generator", alert_generator),
                ("sli recording rules generator", sli_recording_rules_generator),
                ("metadata recording rules generator", meta_recording_rules_generator),
                ("slo alert rules generator", slo_alert_rules_generator),
            )
            if value is None
        ]
        if missing:
            raise GenerateError(f"invalid configuration: {missing[0]} is required")
        self._alert_gen = alert_generator
        self._sli_rule_gen = sli_recording_rules_generator
        self._meta_rule_gen = meta_recording_rules_generator
        self._alert_rule_gen = slo_alert_rules_generator
        self._logger = (logger or NOOP).with_values({"svc": "generate.prometheus.Service"})

    def generate(self, request: Request) -> Response:
        try:
            request.slo_group.validate()
        except ValueError as err:
            raise GenerateError(f"invalid SLO group: {err}") from err

        results = []
        for slo in request.slo_group.slos:
            slo = replace(slo, labels=merge_labels(slo.labels, request.extra_labels))
            try:
                results.append(self._generate_slo(request.info, slo))
            except GenerateError as err:
                raise GenerateError(f'could not generate "{slo.id}" slo: {err}') from err
        return Response(prometheus_slos=results)

    def _generate_slo(self, info: Info, slo: SLO) -> SLOResult:
        logger = self._logger.with_values({"slo": slo.id})

        alert_slo = AlertSLO(id=slo.id, time_window=slo.time_window, objective=slo.objective)
        try:
            alerts = self._alert_gen.generate_mwmb_alerts(alert_slo)
        except Exception as err:
            raise GenerateError(f"could not generate SLO alerts: {err}") from err
        logger.info("Multiwindow-multiburn alerts generated")

        try:
            sli_rules = list(self._sli_rule_gen.generate_sli_recording_rules(slo, alerts))
        except Exception as err:
            raise GenerateError(f"could not generate Prometheus sli recording rules: {err}") from err
        logger.with_values({"rules": len(sli_rules)}).info("SLI recording rules generated")

        try:
            meta_rules = list(self._meta_rule_gen.generate_metadata_recording_rules(info, slo, alerts))
        except Exception as err:
            raise GenerateError(f"could not generate Prometheus metadata recording rules: {err}") from err
        logger.with_values({"rules": len(meta_rules)}).info("Metadata recording rules generated")

        try:
            alert_rules = list(self._alert_rule_gen.generate_slo_alert_rules(slo, alerts))
        except Exception as err:
            raise GenerateError(f"could not generate Prometheus alert rules: {err}") from err
        logger.with_values({"rules": len(alert_rules)}).info("SLO alert rules generated")

        return SLOResult(
            slo=slo,
            alerts=alerts,
            slo_rules=SLORules(
                sli_error_rec_rules=sli_rules,
                metadata_rec_rules=meta_rules,
                alert_rules=alert_rules,
            ),
        )