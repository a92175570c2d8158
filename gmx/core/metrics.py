"""
Prometheus metrics exported by the service.

    - gmx_machine_maintenance: 1 while a machine is in maintenance, else 0
        Labels: machine, node, site
    - gmx_site_maintenance: 1 while a site is in maintenance, else 0
        Labels: site
    - gmx_error_total: count of handled errors
        Labels: type, function
"""
from prometheus_client import Counter, Gauge, CollectorRegistry, REGISTRY

MACHINE_LABELS = ["machine", "node", "site"]
SITE_LABELS = ["site"]


def machine_gauge(registry: CollectorRegistry = REGISTRY) -> Gauge:
    return Gauge(
        "gmx_machine_maintenance",
        "Whether a machine is in maintenance mode or not.",
        MACHINE_LABELS,
        registry=registry,
    )


def site_gauge(registry: CollectorRegistry = REGISTRY) -> Gauge:
    return Gauge(
        "gmx_site_maintenance",
        "Whether a site is in maintenance mode or not.",
        SITE_LABELS,
        registry=registry,
    )


machine_maintenance = machine_gauge()
site_maintenance = site_gauge()

error_count = Counter(
    "gmx_error",
    "Count of errors.",
    ["type", "function"],
)
