from datetime import timedelta

import pytest

from sloth.k8smodel import SLI, SLO, AlertMeta, K8sMeta, PromSLOGroup, SLIEvents, SLIRaw, SLOGroup
from sloth.k8sspec import CRSpecLoader, PrometheusServiceLevel, SLIPlugin, SpecError, YAMLSpecLoader

WINDOW = timedelta(days=30)


class MemPlugins(dict):
    def get_sli_plugin(self, id):
        if id not in self:
            raise KeyError("unknown plugin")
        return self[id]


def loader(plugins=None):
    return YAMLSpecLoader(MemPlugins(plugins or {}), WINDOW)


PLUGIN_ERR_SPEC = """
apiVersion: sloth.slok.dev/v1
kind: PrometheusServiceLevel
metadata:
  name: k8s-test-svc
  namespace: test-ns
spec:
  service: test-svc
  slos:
    - name: "slo"
      objective: 99
      sli:
        plugin:
          id: %s
"""


@pytest.mark.parametrize(
    "spec",
    [
        "",
        ":",
        "\nservice: test-svc\nslos:\n- name: something\n",
        '\nservice: test-svc\nversion: "prometheus/v1"\nslos: []\n',
        "\napiVersion: v1\nkind: Pod\nmetadata:\n  name: sloth-slo-home-wifi\n",
        '\napiVersion: sloth.slok.dev/v1\nkind: PrometheusServiceLevel\nmetadata:\n  name: x\nspec:\n  service: "home-wifi"\n',
        PLUGIN_ERR_SPEC % "unknown_plugin",
    ],
)
def test_invalid_specs(spec):
    with pytest.raises(SpecError):
        loader().load_spec(spec)


def test_plugin_error_fails():
    def boom(meta, labels, options):
        raise RuntimeError("something")

    with pytest.raises(SpecError, match="execution error"):
        loader({"test_plugin": SLIPlugin("test_plugin", boom)}).load_spec(PLUGIN_ERR_SPEC % "test_plugin")


def test_plugin_used():
    def fn(meta, labels, options):
        return (
            f'plugin_raw_expr{{service="{meta["service"]}",slo="{meta["slo"]}",objective="{meta["objective"]}",'
            f'gk1="{labels["gk1"]}",k1="{options["k1"]}",k2="{options["k2"]}"}}'
        )

    spec = """
apiVersion: sloth.slok.dev/v1
kind: PrometheusServiceLevel
metadata:
  name: k8s-test-svc
  namespace: test-ns
spec:
  service: test-svc
  labels:
    gk1: gv1
  slos:
    - name: "slo-test"
      objective: 99
      sli:
        plugin:
          id: test_plugin
          options:
            k1: v1
            k2: "true"
      alerting:
        pageAlert:
          disable: true
        ticketAlert:
          disable: true
"""
    got = loader({"test_plugin": SLIPlugin("test_plugin", fn)}).load_spec(spec)
    assert got == SLOGroup(
        k8s_meta=K8sMeta(kind="PrometheusServiceLevel", api_version="sloth.slok.dev/v1", name="k8s-test-svc", namespace="test-ns"),
        slo_group=PromSLOGroup(
            slos=[
                SLO(
                    id="test-svc-slo-test",
                    name="slo-test",
                    service="test-svc",
                    time_window=WINDOW,
                    labels={"gk1": "gv1"},
                    sli=SLI(raw=SLIRaw('plugin_raw_expr{service="test-svc",slo="slo-test",objective="99.000000",gk1="gv1",k1="v1",k2="true"}')),
                    objective=99,
                    page_alert_meta=AlertMeta(disable=True),
                    ticket_alert_meta=AlertMeta(disable=True),
                )
            ]
        ),
    )


CORRECT = """
apiVersion: sloth.slok.dev/v1
kind: PrometheusServiceLevel
metadata:
  name: k8s-test-svc
  namespace: test-ns
  labels:
    lk1: lv1
    lk2: lv2
  annotations:
    ak1: av1
    ak2: av2
spec:
  service: "test-svc"
  labels:
    owner: "myteam"
  slos:
    - name: "slo1"
      labels:
        category: test
      objective: 99.99999
      description: "This is a test."
      sli:
        events:
          errorQuery: test_expr_error_1
          totalQuery: test_expr_total_1
      alerting:
        name: testAlert
        labels:
          tier: "1"
        annotations:
          runbook: http://runbook.example.com
        pageAlert:
          labels:
            severity: slack
            channel: "#a-myteam"
          annotations:
            message: "This is very important."
        ticketAlert:
          labels:
            severity: slack
            channel: "#a-not-so-important"
          annotations:
            message: "This is not very important."
    - name: "slo2"
      labels:
        category: test2
      objective: 99.9
      sli:
        raw:
          errorRatioQuery: test_expr_ratio_2
      alerting:
        pageAlert:
          disable: true
        ticketAlert:
          disable: true
"""

EXPECTED = SLOGroup(
    k8s_meta=K8sMeta(
        kind="PrometheusServiceLevel",
        api_version="sloth.slok.dev/v1",
        name="k8s-test-svc",
        namespace="test-ns",
        labels={"lk1": "lv1", "lk2": "lv2"},
        annotations={"ak1": "av1", "ak2": "av2"},
    ),
    slo_group=PromSLOGroup(
        slos=[
            SLO(
                id="test-svc-slo1",
                name="slo1",
                description="This is a test.",
                service="test-svc",
                time_window=WINDOW,
                sli=SLI(events=SLIEvents("test_expr_error_1", "test_expr_total_1")),
                objective=99.99999,
                labels={"owner": "myteam", "category": "test"},
                page_alert_meta=AlertMeta(
                    name="testAlert",
                    labels={"tier": "1", "severity": "slack", "channel": "#a-myteam"},
                    annotations={"message": "This is very important.", "runbook": "http://runbook.example.com"},
                ),
                ticket_alert_meta=AlertMeta(
                    name="testAlert",
                    labels={"tier": "1", "severity": "slack", "channel": "#a-not-so-important"},
                    annotations={"message": "This is not very important.", "runbook": "http://runbook.example.com"},
                ),
            ),
            SLO(
                id="test-svc-slo2",
                name="slo2",
                service="test-svc",
                time_window=WINDOW,
                sli=SLI(raw=SLIRaw("test_expr_ratio_2")),
                objective=99.9,
                labels={"owner": "myteam", "category": "test2"},
                page_alert_meta=AlertMeta(disable=True),
                ticket_alert_meta=AlertMeta(disable=True),
            ),
        ]
    ),
)


def test_correct_spec():
    assert loader().load_spec(CORRECT) == EXPECTED


def test_cr_loader_maps_same_model():
    import yaml

    cr = PrometheusServiceLevel.from_mapping(yaml.safe_load(CORRECT))
    assert CRSpecLoader(MemPlugins(), WINDOW).load_spec(cr) == EXPECTED


@pytest.mark.parametrize(
    "spec,exp",
    [
        ("", False),
        ("{", False),
        ("\napiVersion: sloth.slok.dev/v2\nkind: PrometheusServiceLevel\n", False),
        ("\napiVersion: sloth.slok.dev/v1\nkind: PrometheusService\n", False),
        ('\napiVersion: "sloth.slok.dev/v1"\nkind: "PrometheusServiceLevel"\n', True),
        ("\napiVersion: sloth.slok.dev/v1\nkind: PrometheusServiceLevel\n", True),
        ("\napiVersion: 'sloth.slok.dev/v1'\nkind: 'PrometheusServiceLevel'\n", True),
        ("\napiVersion:       sloth.slok.dev/v1           \nkind:               PrometheusServiceLevel      \n", True),
    ],
)
def test_is_spec_type(spec, exp):
    assert loader().is_spec_type(spec.encode()) is exp