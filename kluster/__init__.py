"""kluster - a small client for the Kubernetes HTTP API with token or mTLS auth."""

__version__ = "0.1.0"
