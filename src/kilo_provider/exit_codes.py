"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~kilo_provider.exceptions.KiloError` subclass.
Shell wrappers can inspect the exit code of ``kilo-provider`` to tell a
rejected login apart from an unreachable gateway without parsing stderr.

Example::

    $ kilo-provider login
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the device code was denied or expired
"""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_AUTH_FAILURE = 3
"""Device authorization failed or stored credentials are no longer usable."""

EXIT_CATALOG_FAILURE = 5
"""The gateway model catalog could not be fetched or was malformed."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (DNS failure, connection refused)."""

EXIT_CANCELLED = 130
"""The user cancelled the operation (Ctrl-C)."""
