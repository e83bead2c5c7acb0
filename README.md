# sloth

Building blocks for SLO alerting on Prometheus: multiwindow, multi-burn-rate
alert calculation, loading of Kubernetes `PrometheusServiceLevel` specs, and
output of rules as a Prometheus operator `PrometheusRule` document.

Given a service level objective such as "99.9% of requests succeed over
30 days", `sloth` works out the four multiwindow, multi-burn-rate alerts
described in the SRE workbook (page/ticket, each quick and slow). It also
provides a generation service that runs rule generators over each SLO, and a
controller handler that ties loading, generation and storage together.

## Installation

From a checkout of the project:

```
pip install .
```

The only runtime dependency is PyYAML.

## Modules

| Module | Purpose |
| --- | --- |
| `sloth.alert` | SLO period windows catalog (`FSWindowsRepo`, `Windows`, `Window`), burn-rate maths and the alert generator (`Generator`, `SLO`, `MWMBAlert`, `MWMBAlertGroup`, `Severity`). Also `parse_duration` for Prometheus-style durations such as `30d` or `1h30m`, and `load_windows` for one `AlertWindows` YAML document. |
| `sloth.k8smodel` | The SLO model (`SLO`, `SLI`, `SLIEvents`, `SLIRaw`, `AlertMeta`, `Rule`, `SLORules`, `PromSLOGroup`), the Kubernetes metadata wrapper (`K8sMeta`, `SLOGroup`), their validation and `merge_labels`. |
| `sloth.k8sspec` | Loading `PrometheusServiceLevel` (`sloth.slok.dev/v1`) specs from YAML text (`YAMLSpecLoader`) or from a `PrometheusServiceLevel` object (`CRSpecLoader`, `PrometheusServiceLevel.from_mapping`), with optional SLI plugins (`SLIPlugin`). |
| `sloth.k8sstorage` | Writing rules as a `PrometheusRule`, either as YAML to a text stream (`IOWriterPrometheusOperatorYAMLRepo`) or handed as a dict to an ensurer object you supply (`PrometheusOperatorCRDRepo`). |
| `sloth.generate` | The generation service (`Service`, `Request`, `Response`, `SLOResult`) and no-op generators (`NoopSLIRecordingRulesGenerator`, `NoopMetadataRecordingRulesGenerator`, `NoopSLOAlertRulesGenerator`) for switching a kind of rule off. |
| `sloth.kubecontroller` | A controller `Handler` that loads a `PrometheusServiceLevel`, generates its rules, stores them and reports the outcome to a status storer. |
| `sloth.availability_plugin` | An example SLI plugin (`sli_plugin`) that builds an HTTP availability error-ratio query. |
| `sloth.log` | A small structured logger interface (`Logger`, `NoopLogger`, `StdLogger`) with context-carried values (`ctx_with_values`, `values_from_ctx`). |
| `sloth.info` | Version and generation mode metadata (`Info`, `Mode`). |

## Alerts

```python
from datetime import timedelta

from sloth.alert import SLO, FSWindowsRepo, Generator

generator = Generator(FSWindowsRepo())
alerts = generator.generate_mwmb_alerts(
    SLO(id="myservice-availability", time_window=timedelta(days=30), objective=99.9)
)
alerts.page_quick.burn_rate_factor   # 14.4
alerts.page_quick.long_window        # timedelta(hours=1)
```

An SLO period that is not in the catalog raises `WindowsError`.

### SLO period windows

`FSWindowsRepo()` with no path uses the built-in catalog, which covers the
30-day and 28-day periods:

| Alert | Short window | Long window | Error budget consumed |
| --- | --- | --- | --- |
| page, quick | 5m | 1h | 2% |
| page, slow | 30m | 6h | 5% |
| ticket, quick | 2h | 1d | 10% |
| ticket, slow | 6h | 3d | 10% |

For a 30-day period that gives burn-rate factors of 14.4, 6, 3 and 1.

`FSWindowsRepo(path)` replaces the built-in catalog with the `.yaml` and
`.yml` files found under `path`, searched recursively. Each file looks like
this:

```yaml
apiVersion: sloth.slok.dev/v1
kind: AlertWindows
spec:
  sloPeriod: 7d
  page:
    quick:
      errorBudgetPercent: 8
      shortWindow: 5m
      longWindow: 1h
    slow:
      errorBudgetPercent: 12.5
      shortWindow: 30m
      longWindow: 6h
  ticket:
    quick:
      errorBudgetPercent: 20
      shortWindow: 2h
      longWindow: 1d
    slow:
      errorBudgetPercent: 42
      shortWindow: 6h
      longWindow: 3d
```

Every window needs a short window, a long window and a non-zero error budget
percent. If two files declare the same period with identical windows, a
warning is logged. If the windows differ, loading fails with `WindowsError`.

## Service level specs

`YAMLSpecLoader(plugins_repo, window_period).is_spec_type(data)` recognises a
document by its `apiVersion: sloth.slok.dev/v1` and
`kind: PrometheusServiceLevel` lines. `load_spec(data)` turns it into an
`SLOGroup`:

```yaml
apiVersion: sloth.slok.dev/v1
kind: PrometheusServiceLevel
metadata:
  name: myservice
  namespace: monitoring
spec:
  service: "myservice"
  labels:
    owner: "myteam"
  slos:
    - name: "requests-availability"
      objective: 99.9
      description: "Availability of HTTP request responses."
      sli:
        events:
          errorQuery: sum(rate(http_request_duration_seconds_count{job="myservice",code=~"(5..|429)"}[{{.window}}]))
          totalQuery: sum(rate(http_request_duration_seconds_count{job="myservice"}[{{.window}}]))
      alerting:
        name: MyServiceHighErrorRate
        labels:
          category: "availability"
        annotations:
          summary: "High error rate on 'myservice' requests responses"
        pageAlert:
          labels:
            severity: pageteam
        ticketAlert:
          labels:
            severity: "slack"
```

Each SLO gets the ID `<service>-<name>` and the loader's window period as its
time window. Spec labels are merged with SLO labels, and alerting labels and
annotations with the per-alert ones (the more specific map wins). An alert
with `disable: true` is carried into the model as disabled `AlertMeta`. A
document of another kind, or one with no SLOs, raises `SpecError`.

An SLI is given in one of three ways:

- `events`: an error query and a total query;
- `raw`: a single error-ratio query;
- `plugin`: an `id` and `options`. The plugin is fetched with
  `plugins_repo.get_sli_plugin(id)`, and its `func(meta, labels, options)`
  returns the raw error-ratio query. `meta` holds `service`, `slo` and
  `objective`, and `labels` holds the spec labels.

`sloth.availability_plugin.sli_plugin` is such a function. It needs a `job`
option and non-empty `owner` and `tier` labels, and it accepts an optional
`filter` of Prometheus label matchers. Otherwise it raises `PluginError`.

## Generation

`Service(alert_generator, sli_recording_rules_generator,
meta_recording_rules_generator, slo_alert_rules_generator, logger=None)`
needs all four generators. Use the no-op generators from `sloth.generate` to
switch a kind of rule off. `Service.generate(Request(...))` validates the SLO
group and merges `extra_labels` into each SLO's labels, with extra labels
winning. For each SLO it returns an `SLOResult` with the alerts and the
rules.

## Output

`IOWriterPrometheusOperatorYAMLRepo(stream).store_slos(kmeta, slos)` writes
one `monitoring.coreos.com/v1` `PrometheusRule` document, preceded by a
"Code generated" disclaimer:

```python
import io

from sloth.k8smodel import SLO, K8sMeta, Rule, SLORules
from sloth.k8sstorage import IOWriterPrometheusOperatorYAMLRepo, StorageSLO

out = io.StringIO()
IOWriterPrometheusOperatorYAMLRepo(out).store_slos(
    K8sMeta(name="myservice", namespace="monitoring"),
    [
        StorageSLO(
            slo=SLO(id="myservice-availability"),
            rules=SLORules(sli_error_rec_rules=[Rule(record="test:record", expr="test-expr")]),
        )
    ],
)
```

The document holds one rule group per SLO and per kind of rule, in this
order:

- `sloth-slo-sli-recordings-<id>`
- `sloth-slo-meta-recordings-<id>`
- `sloth-slo-alerts-<id>`

Empty groups are left out. An empty SLO list raises `StorageError`. If no
group is left, `NoSLORulesError` is raised, so that a spec that produces no
rules by mistake does not go unnoticed. `PrometheusOperatorCRDRepo` builds
the same object, adds an owner reference taken from the `K8sMeta`, and
passes it to `ensurer.ensure_prometheus_rule(rule)`.

## Controller handler

`Handler(generator, spec_loader, repository, kube_status_storer, ...)` takes
a `PrometheusServiceLevel` in `handle(obj)` and ignores other objects. It
skips objects that are being deleted. It also skips objects whose spec is
unchanged and whose rules were generated successfully less than
`ignore_handle_before` ago (3 minutes by default). Otherwise it loads,
generates and stores, and then always calls
`kube_status_storer.ensure_prometheus_service_level_status(psl, error)`.

## What this package does not do

- It has no command-line program.
- It contains no generators for the Prometheus SLI recording, metadata
  recording or alert rules. `Service` only runs the generators it is given.
- It does not talk to a Kubernetes API server. The ensurer, status storer and
  source of `PrometheusServiceLevel` objects are yours to provide.
- It does not load SLI plugins from files. The plugin repository is any
  object with a `get_sli_plugin(id)` method.
- It reads only the `PrometheusServiceLevel` spec format.

## Errors

- `ValidationError` (`sloth.k8smodel`): the model is invalid.
- `SpecError` (`sloth.k8sspec`): a spec cannot be loaded.
- `WindowsError` (`sloth.alert`): a bad duration, a broken windows catalog,
  or an unsupported SLO period.
- `StorageError` and its subclass `NoSLORulesError` (`sloth.k8sstorage`):
  rules cannot be stored.
- `GenerateError` (`sloth.generate`): rules cannot be generated.
- `HandlerError` (`sloth.kubecontroller`): the controller handler fails.
- `PluginError` (`sloth.availability_plugin`): the example plugin rejects its
  input.

## Running the tests

```
pip install ".[test]"
pytest
```