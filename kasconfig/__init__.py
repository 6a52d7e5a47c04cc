"""Config observers that compute kube-apiserver configuration fragments from cluster resources."""

__version__ = "0.1.0"