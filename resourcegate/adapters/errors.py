class StorageManagerError(Exception):
    pass


class BackendMissing(StorageManagerError):
    pass


class AdapterMissing(StorageManagerError):
    pass
