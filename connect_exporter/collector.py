import logging
import time
from dataclasses import dataclass, field

from prometheus_client.core import GaugeMetricFamily

from connect_exporter.connect_client import ConnectAPIClient, ConnectError, ConnectorStatus
from connect_exporter.metrics import ExporterMetrics, MetricSpec
from connect_exporter.policy import FailurePolicy

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Sample:
    metric: MetricSpec
    labels: tuple[str, ...]
    value: float


@dataclass
class ScrapeOutcome:
    up: bool = False
    samples: list[Sample] = field(default_factory=list)


class ScrapeDeadlineExceeded(Exception):
    pass


class ConnectCollector:
    """Prometheus collector running one Kafka Connect scrape per ``collect()``.

    Every cycle starts from scratch: names are listed, each connector's status
    is fetched in server order, and ``kafka_connect_up`` is emitted last.
    A failed connector is skipped or fails the cycle depending on ``policy``.
    """

    def __init__(
        self,
        client: ConnectAPIClient,
        metrics: ExporterMetrics,
        policy: FailurePolicy = FailurePolicy.SKIP,
        scrape_deadline: float | None = None,
        clock=time.monotonic,
    ):
        self.client = client
        self.metrics = metrics
        self.policy = policy
        self.scrape_deadline = scrape_deadline
        self._clock = clock
        log.info("Collecting data from: %s", client.base_uri)

    def scrape(self) -> ScrapeOutcome:
        outcome = ScrapeOutcome()
        deadline = None if self.scrape_deadline is None else self._clock() + self.scrape_deadline

        try:
            completed = self._scrape_connectors(outcome, deadline)
        except ScrapeDeadlineExceeded:
            log.error("Scrape of kafka connect exceeded %ss deadline, aborting", self.scrape_deadline)
            completed = False

        if not completed:
            # never publish a partial set as if it were complete
            outcome.samples.clear()
        outcome.up = completed
        outcome.samples.append(Sample(self.metrics.up, (), 1 if completed else 0))
        return outcome

    def _scrape_connectors(self, outcome: ScrapeOutcome, deadline: float | None) -> bool:
        try:
            names = self.client.fetch_connector_names(timeout=self._request_timeout(deadline))
        except ConnectError as e:
            log.error("Failed to fetch connector list, aborting: %s", e)
            return False

        for name in names:
            try:
                status = self.client.fetch_connector_status(name, timeout=self._request_timeout(deadline))
            except ConnectError as e:
                if self.policy is FailurePolicy.ABORT:
                    log.error("Failed to fetch connector status for %r, aborting: %s", name, e)
                    return False
                # a request that timed out may have used up the cycle
                self._check_deadline(deadline)
                log.warning("Failed to fetch connector status for %r, skipping: %s", name, e)
                continue
            outcome.samples.extend(self._status_samples(status))

        self._check_deadline(deadline)
        return True

    def _status_samples(self, status: ConnectorStatus) -> list[Sample]:
        samples = [
            Sample(
                self.metrics.connector_state,
                (status.name, status.state.lower(), status.worker_id),
                1,
            )
        ]
        for task in status.tasks:
            samples.append(
                Sample(
                    self.metrics.task_state,
                    (status.name, task.state.lower(), task.worker_id, str(task.id)),
                    1,
                )
            )
        return samples

    def _request_timeout(self, deadline: float | None) -> float | None:
        if deadline is None:
            return None
        remaining = deadline - self._clock()
        if remaining <= 0:
            raise ScrapeDeadlineExceeded()
        return min(self.client.timeout, remaining)

    def _check_deadline(self, deadline: float | None) -> None:
        if deadline is not None and self._clock() >= deadline:
            raise ScrapeDeadlineExceeded()

    def describe(self):
        # empty families: registering must not trigger a scrape
        for spec in self.metrics.all():
            yield GaugeMetricFamily(spec.name, spec.documentation, labels=spec.labelnames)

    def collect(self):
        outcome = self.scrape()
        families = {
            spec.name: GaugeMetricFamily(spec.name, spec.documentation, labels=spec.labelnames)
            for spec in self.metrics.all()
        }
        for sample in outcome.samples:
            families[sample.metric.name].add_metric(list(sample.labels), sample.value)
        yield from families.values()
