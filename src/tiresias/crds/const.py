# Prometheus Operator custom resource coordinates.
CRD_GROUP = "monitoring.coreos.com"
CRD_VERSION = "v1"
CRD_PLURAL_PROMETHEUS = "prometheuses"
CRD_KIND_PROMETHEUS = "Prometheus"

# Port the Prometheus Operator exposes on the governing service.
PROMETHEUS_WEB_PORT = 9090
