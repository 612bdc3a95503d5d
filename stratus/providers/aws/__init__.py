"""AWS autoscaling group provider.

Example:
    from stratus.providers.aws import AWSCloud

    cloud = AWSCloud(region="us-east-1", tags={"KubernetesCluster": "k8s.example.com"})
"""

from stratus.providers.aws.cloud import AWSCloud, classify_client_error

__all__ = ["AWSCloud", "classify_client_error"]
