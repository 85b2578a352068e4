"""HTTP client module for kilo_provider.

Provides :class:`GatewayClient`, a blocking wrapper around :mod:`httpx`
for the gateway's device-authorization and model-catalog endpoints.

Example::

    from kilo_provider.client import GatewayClient

    with GatewayClient() as client:
        records = client.fetch_catalog()
"""

from kilo_provider.client.gateway import GatewayClient

__all__ = ["GatewayClient"]
