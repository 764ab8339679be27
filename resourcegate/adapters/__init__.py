from resourcegate.adapters.abstract import AbstractAdapter
from resourcegate.adapters.default import DefaultAdapter
from resourcegate.adapters.errors import AdapterMissing, BackendMissing, StorageManagerError
from resourcegate.adapters.sqlalchemy_adapter import AccessibleMixin, SQLAlchemyAdapter, accessible_conditions

__all__ = [
    "AbstractAdapter",
    "AccessibleMixin",
    "AdapterMissing",
    "BackendMissing",
    "DefaultAdapter",
    "SQLAlchemyAdapter",
    "StorageManagerError",
    "accessible_conditions",
]
