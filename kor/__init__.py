"""Find unused Kubernetes resources in an in-memory view of a cluster."""

__version__ = "0.1.0"