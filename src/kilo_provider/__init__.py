"""kilo_provider -- Kilo gateway provider: device-flow login and model catalog.

This package lets a host application offer the models of the Kilo gateway
(an OpenRouter-compatible proxy). It logs users in with an OAuth device
authorization flow and keeps the host's model list in step with what the
user may call: free models before login, the full catalog after.

Typical host integration::

    from kilo_provider.provider import register

    provider = register(host)   # registers "kilo" with the free model list

Modules:
    provider: Host lifecycle wiring (:class:`~kilo_provider.provider.KiloProvider`).
    host: Abstract host collaborators and registration payloads.
    auth: Device authorization state machine and credential checks.
    catalog: Catalog filtering, normalization and reconciliation.
    client: HTTP client for the gateway endpoints.
    config: Environment-driven endpoints and constants.
    models: Pydantic models shared across the package.
    exceptions: Exception hierarchy with exit-code mapping.
    app: Developer CLI (``kilo-provider login`` / ``kilo-provider models``).
"""

__version__ = "0.1.0"
