"""kubedeps: dependency graphs for Kubernetes resources and CRD schemas."""

__version__ = "0.1.0"
