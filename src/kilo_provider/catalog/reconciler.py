"""Merge the authenticated catalog into an already-registered model list."""

from __future__ import annotations

from kilo_provider.models import NormalizedModel, ProviderModel


def reconcile(
    registered: list[ProviderModel],
    full_catalog: list[NormalizedModel],
    provider_tag: str,
) -> list[ProviderModel]:
    """Replace one provider's registered models with its full catalog.

    One registered entry of *provider_tag* serves as the template for
    provider metadata the normalizer does not produce (API flavour, base
    URL, headers, host extras). Entries of other providers are kept
    verbatim and in order; the upgraded entries follow them in catalog
    order.

    Args:
        registered: Models currently registered with the host.
        full_catalog: The cached authenticated catalog.
        provider_tag: Provider whose entries are replaced.

    Returns:
        A new list, or *registered* itself when the catalog is empty or no
        entry of *provider_tag* exists to template from.
    """
    if not full_catalog:
        return registered

    template = next((m for m in registered if m.provider == provider_tag), None)
    if template is None:
        return registered

    kept = [m for m in registered if m.provider != provider_tag]
    upgraded = [ProviderModel.from_template(template, model) for model in full_catalog]
    return kept + upgraded
