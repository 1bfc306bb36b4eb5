from dataclasses import dataclass

NAMESPACE = "kafka_connect"


@dataclass(frozen=True)
class MetricSpec:
    name: str
    documentation: str
    labelnames: tuple[str, ...] = ()


@dataclass(frozen=True)
class ExporterMetrics:
    connector_state: MetricSpec
    task_state: MetricSpec
    up: MetricSpec

    def all(self) -> tuple[MetricSpec, ...]:
        return (self.connector_state, self.task_state, self.up)


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    return "_".join(part for part in (namespace, subsystem, name) if part)


def build_metrics(namespace: str = NAMESPACE) -> ExporterMetrics:
    """Metric descriptors; build once per process and hand to the collector."""
    return ExporterMetrics(
        connector_state=MetricSpec(
            build_fq_name(namespace, "connector", "state"),
            "Is the connector up?",
            ("connector", "state", "worker_id"),
        ),
        task_state=MetricSpec(
            build_fq_name(namespace, "connector_task", "state"),
            "Are the tasks for the connector up?",
            ("connector", "state", "worker_id", "task_id"),
        ),
        up=MetricSpec(
            build_fq_name(namespace, "", "up"),
            "Was the last scrape of kafka connect successful?",
        ),
    )
