"""Kubernetes controller handler for ``PrometheusServiceLevel`` resources."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from sloth.generate import Request, Response
from sloth.info import VERSION, Info, Mode
from sloth.k8smodel import K8sMeta, SLOGroup
from sloth.k8sspec import API_VERSION, PrometheusServiceLevel
from sloth.k8sstorage import StorageSLO
from sloth.log import NOOP, Logger


class HandlerError(Exception):
    """Raised when a resource cannot be handled."""


class SpecLoader(Protocol):
    def load_spec(self, spec: PrometheusServiceLevel) -> SLOGroup: ...


class RulesGenerator(Protocol):
    def generate(self, request: Request) -> Response: ...


class Repository(Protocol):
    def store_slos(self, kmeta: K8sMeta, slos: list[StorageSLO]) -> None: ...


class KubeStatusStorer(Protocol):
    def ensure_prometheus_service_level_status(
        self, slo: PrometheusServiceLevel, err: BaseException | None
    ) -> None: ...


class Handler:
    """Generates and stores the rules of each received service level."""

    def __init__(
        self,
        generator: RulesGenerator | None,
        spec_loader: SpecLoader | None,
        repository: Repository | None,
        kube_status_storer: KubeStatusStorer | None,
        extra_labels: dict[str, str] | None = None,
        ignore_handle_before: timedelta | None = None,
        logger: Logger | None = None,
    ):
        if generator is None:
            raise HandlerError("invalid configuration: generator is required")
        if spec_loader is None:
            raise HandlerError("invalid configuration: kubernetes cr spec loader is required")
        if kube_status_storer is None:
            raise HandlerError("invalid configuration: kubernetes status storer is required")
        if repository is None:
            raise HandlerError("invalid configuration: repository is required")
        self._generator = generator
        self._spec_loader = spec_loader
        self._repository = repository
        self._status_storer = kube_status_storer
        self._extra_labels = dict(extra_labels or {})
        self._ignore_handle_before = ignore_handle_before or timedelta(minutes=3)
        self._logger = (logger or NOOP).with_values({"service": "kubecontroller.Handler"})

    def handle(self, obj: Any) -> None:
        if isinstance(obj, PrometheusServiceLevel):
            self._handle_psl(obj)
            return
        self._logger.warning("Unsuported Kubernetes object type: %s", type(obj).__name__)

    def ignore_reason(self, psl: PrometheusServiceLevel) -> str | None:
        """Return why the resource should be skipped, or ``None`` to handle it."""
        if psl.deletion_timestamp is not None:
            return "deletion in progress"

        # Status updates trigger new events; break that loop for recent successes
        # whose spec did not change.
        last = psl.status.last_prom_op_rules_successful_generated
        if (
            psl.generation == psl.status.observed_generation
            and psl.status.prom_op_rules_generated
            and isinstance(last, datetime)
        ):
            if last.tzinfo is None:
                last = last.replace(tzinfo=timezone.utc)
            if datetime.now(timezone.utc) - last < self._ignore_handle_before:
                return "no spec change in correct state object"
        return None

    def _handle_psl(self, psl: PrometheusServiceLevel) -> None:
        logger = self._logger.with_values({"ns": psl.namespace, "name": psl.name})

        reason = self.ignore_reason(psl)
        if reason is not None:
            logger.debug('Ignoring object due to "%s"', reason)
            return

        error: BaseException | None = None
        try:
            self._process(psl)
        except Exception as exc:
            error = exc
            raise
        finally:
            try:
                self._status_storer.ensure_prometheus_service_level_status(psl, error)
            except Exception as stored_err:
                logger.error("Could not set PrometheusServiceLevel CRD status: %s", stored_err)

    def _process(self, psl: PrometheusServiceLevel) -> None:
        try:
            model = self._spec_loader.load_spec(psl)
        except Exception as err:
            raise HandlerError(f"could not load CR spec into model: {err}") from err

        request = Request(
            info=Info(version=VERSION, mode=Mode.CONTROLLER_GEN_KUBERNETES, spec=API_VERSION),
            extra_labels=dict(self._extra_labels),
            slo_group=model.slo_group,
        )
        try:
            response = self._generator.generate(request)
        except Exception as err:
            raise HandlerError(f"could not generate SLOs: {err}") from err

        storage_slos = [StorageSLO(slo=r.slo, rules=r.slo_rules) for r in response.prometheus_slos]
        try:
            self._repository.store_slos(model.k8s_meta, storage_slos)
        except Exception as err:
            raise HandlerError(f"could not store SLOs: {err}") from err