"""GCE managed instance group provider.

Environment Variables:
    GOOGLE_APPLICATION_CREDENTIALS: Path to service account key (optional)
"""

from stratus.providers.gcp.cloud import GCPCloud, classify_api_error, gce_labels

__all__ = ["GCPCloud", "classify_api_error", "gce_labels"]
