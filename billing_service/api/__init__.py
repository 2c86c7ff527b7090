"""HTTP surface: health probes and Prometheus metrics."""
