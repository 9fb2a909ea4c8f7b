"""Engine — probes, actions, catalog and the reconciler loop."""

from provisioner.core.engine.catalog import ActionCatalog, CatalogEntry, default_catalog
from provisioner.core.engine.reconciler import ReconcileObserver, Reconciler, validate_specs

__all__ = [
    "ActionCatalog",
    "CatalogEntry",
    "ReconcileObserver",
    "Reconciler",
    "default_catalog",
    "validate_specs",
]
