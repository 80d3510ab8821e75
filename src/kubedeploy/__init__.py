"""
kubedeploy applies Kubernetes manifests to a cluster and provisions image pull secrets for private registries.
"""

__version__ = "0.1.0"
