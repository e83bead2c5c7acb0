from datetime import timedelta

import pytest

from sloth.alert import FSWindowsRepo, Generator, MWMBAlert, MWMBAlertGroup, Severity
from sloth.generate import (
    GenerateError,
    NoopMetadataRecordingRulesGenerator,
    NoopSLIRecordingRulesGenerator,
    NoopSLOAlertRulesGenerator,
    Request,
    Service,
)
from sloth.info import Info, Mode
from sloth.k8smodel import SLI, SLO, AlertMeta, PromSLOGroup, Rule, SLIEvents


def _noop_service(**overrides):
    kwargs = dict(
        alert_generator=Generator(FSWindowsRepo()),
        sli_recording_rules_generator=NoopSLIRecordingRulesGenerator(),
        meta_recording_rules_generator=NoopMetadataRecordingRulesGenerator(),
        slo_alert_rules_generator=NoopSLOAlertRulesGenerator(),
    )
    kwargs.update(overrides)
    return Service(**kwargs)


def _slo():
    return SLO(
        id="test-id",
        name="test-name",
        service="test-svc",
        sli=SLI(
            events=SLIEvents(
                error_query='rate(my_metric{error="true"}[{{.window}}])',
                total_query="rate(my_metric[{{.window}}])",
            )
        ),
        time_window=timedelta(days=30),
        objective=99.9,
        labels={"test_label": "label_1"},
        page_alert_meta=AlertMeta(
            name="p_alert_test_name",
            labels={"p_alert_label": "p_label_al_1"},
            annotations={"p_alert_annot": "p_label_an_1"},
        ),
        ticket_alert_meta=AlertMeta(
            name="t_alert_test_name",
            labels={"t_alert_label": "t_label_al_1"},
            annotations={"t_alert_annot": "t_label_an_1"},
        ),
    )


def _request():
    return Request(
        extra_labels={"extra_k1": "extra_v1", "extra_k2": "extra_v2"},
        info=Info(version="test-ver", mode=Mode.TEST, spec="test-spec"),
        slo_group=PromSLOGroup(slos=[_slo()]),
    )


EXPECTED_ALERTS = MWMBAlertGroup(
    page_quick=MWMBAlert(
        id="test-id-page-quick",
        short_window=timedelta(minutes=5),
        long_window=timedelta(hours=1),
        burn_rate_factor=14.4,
        error_budget=0.09999999999999432,
        severity=Severity.PAGE,
    ),
    page_slow=MWMBAlert(
        id="test-id-page-slow",
        short_window=timedelta(minutes=30),
        long_window=timedelta(hours=6),
        burn_rate_factor=6,
        error_budget=0.09999999999999432,
        severity=Severity.PAGE,
    ),
    ticket_quick=MWMBAlert(
        id="test-id-ticket-quick",
        short_window=timedelta(hours=2),
        long_window=timedelta(days=1),
        burn_rate_factor=3,
        error_budget=0.09999999999999432,
        severity=Severity.TICKET,
    ),
    ticket_slow=MWMBAlert(
        id="test-id-ticket-slow",
        short_window=timedelta(hours=6),
        long_window=timedelta(days=3),
        burn_rate_factor=1,
        error_budget=0.09999999999999432,
        severity=Severity.TICKET,
    ),
)


def test_no_slos_errors():
    with pytest.raises(GenerateError):
        _noop_service().generate(Request())


def test_generates_alerts_and_merges_extra_labels():
    resp = _noop_service().generate(_request())
    assert len(resp.prometheus_slos) == 1
    result = resp.prometheus_slos[0]
    assert result.slo.labels == {
        "test_label": "label_1",
        "extra_k1": "extra_v1",
        "extra_k2": "extra_v2",
    }
    assert result.alerts == EXPECTED_ALERTS
    assert result.slo_rules.sli_error_rec_rules == []
    assert result.slo_rules.metadata_rec_rules == []
    assert result.slo_rules.alert_rules == []


def test_request_slo_is_not_mutated():
    req = _request()
    _noop_service().generate(req)
    assert req.slo_group.slos[0].labels == {"test_label": "label_1"}


class _RecordingGen:
    def __init__(self):
        self.calls = []

    def generate_sli_recording_rules(self, slo, alerts):
        self.calls.append(("sli", slo.labels, alerts.page_quick.id))
        return [Rule(record="slo:sli_error:ratio_rate5m", expr="x")]

    def generate_metadata_recording_rules(self, info, slo, alerts):
        self.calls.append(("meta", info.version, slo.id))
        return [Rule(record="sloth_slo_info", expr="vector(1)")]

    def generate_slo_alert_rules(self, slo, alerts):
        self.calls.append(("alert", slo.page_alert_meta.name))
        return [Rule(alert=slo.page_alert_meta.name, expr="y")]


def test_rule_generators_are_used():
    gen = _RecordingGen()
    svc = _noop_service(
        sli_recording_rules_generator=gen,
        meta_recording_rules_generator=gen,
        slo_alert_rules_generator=gen,
    )
    result = svc.generate(_request()).prometheus_slos[0]
    assert [r.record for r in result.slo_rules.sli_error_rec_rules] == ["slo:sli_error:ratio_rate5m"]
    assert [r.record for r in result.slo_rules.metadata_rec_rules] == ["sloth_slo_info"]
    assert [r.alert for r in result.slo_rules.alert_rules] == ["p_alert_test_name"]
    assert gen.calls[0][1]["extra_k1"] == "extra_v1"
    assert gen.calls[0][2] == "test-id-page-quick"
    assert gen.calls[1] == ("meta", "test-ver", "test-id")


def test_unsupported_time_window_errors():
    req = _request()
    req.slo_group.slos[0].time_window = timedelta(days=42)
    with pytest.raises(GenerateError, match="test-id"):
        _noop_service().generate(req)


def test_rule_generator_failure_is_wrapped():
    class Failing:
        def generate_slo_alert_rules(self, slo, alerts):
            raise RuntimeError("boom")

    with pytest.raises(GenerateError, match="alert rules: boom"):
        _noop_service(slo_alert_rules_generator=Failing()).generate(_request())


def test_missing_alert_generator_errors():
    with pytest.raises(GenerateError, match="alert generator is required"):
        _noop_service(alert_generator=None)