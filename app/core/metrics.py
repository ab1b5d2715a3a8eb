"""Prometheus metrics for assessment volume, cache efficiency and batch outcomes"""

from prometheus_client import Counter, Histogram

assessment_counter = Counter(
    "risk_assessments_total",
    "Client risk assessments served",
    ["source", "risk_level"],  # source: computed | cached
)

assessment_failure_counter = Counter(
    "risk_assessment_failures_total",
    "Assessments that failed inside a batch or auto-assessment sweep",
)

overall_score_histogram = Histogram(
    "risk_overall_score",
    "Distribution of computed overall risk scores",
    buckets=[10, 25, 40, 50, 60, 75, 90, 100],
)

degraded_input_counter = Counter(
    "risk_degraded_inputs_total",
    "Collaborator inputs scored as uncertain because they were unavailable",
    ["input"],
)


def record_assessment(cached: bool, risk_level: str, overall_score: int) -> None:
    source = "cached" if cached else "computed"
    assessment_counter.labels(source=source, risk_level=risk_level).inc()
    if not cached:
        overall_score_histogram.observe(overall_score)
