"""Parse Kubernetes manifests, score Deployments and StatefulSets, and render the results."""

__version__ = "0.1.0"