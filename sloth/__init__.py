"""SLO alert calculation, service level spec loading and Prometheus operator rule output."""

__version__ = "0.1.0"

__all__ = [
    "alert",
    "availability_plugin",
    "generate",
    "info",
    "k8smodel",
    "k8sspec",
    "k8sstorage",
    "kubecontroller",
    "log",
]