"""Object catalog: records, snapshots, storage and index builds."""

from .builder import SCOPE_ALL, BuildError, BuildInProgress, IndexBuilder
from .extractor import ExtractError, extract_record
from .models import (
    NOT_BUILT,
    BuildStats,
    CatalogSnapshot,
    ExtractFailure,
    IndexBuildJob,
    ObjectRecord,
    build_snapshot,
)
from .store import (
    CATALOG_SCHEMA_VERSION,
    CatalogSchemaUnsupportedError,
    CatalogStore,
    CatalogStoreCorruptError,
)
from .types import (
    ObjectTypeRegistry,
    ObjectTypeSpec,
    UnknownObjectTypeError,
    default_object_types,
)

__all__ = [
    "BuildError",
    "BuildInProgress",
    "BuildStats",
    "CATALOG_SCHEMA_VERSION",
    "CatalogSchemaUnsupportedError",
    "CatalogSnapshot",
    "CatalogStore",
    "CatalogStoreCorruptError",
    "ExtractError",
    "ExtractFailure",
    "IndexBuildJob",
    "IndexBuilder",
    "NOT_BUILT",
    "ObjectRecord",
    "ObjectTypeRegistry",
    "ObjectTypeSpec",
    "SCOPE_ALL",
    "UnknownObjectTypeError",
    "build_snapshot",
    "default_object_types",
    "extract_record",
]
