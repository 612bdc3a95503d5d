"""Cloud provider adapters.

Providers are imported explicitly so that an unused provider's SDK is never
loaded:

    from stratus.providers.aws import AWSCloud
    from stratus.providers.gcp import GCPCloud
"""
