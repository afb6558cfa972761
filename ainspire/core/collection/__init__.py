"""
Collection domain: models, the collection store, and import/export.
"""

from .models import (
    Category,
    Classification,
    ClassificationJob,
    ExtractedFrame,
    ReferenceImage,
    VideoSource,
)
from .store import CollectionStore
from .transfer import (
    CollectionExportError,
    CollectionImportError,
    build_image_archive,
    export_collection,
    import_collection,
)

__all__ = [
    "Category",
    "Classification",
    "ClassificationJob",
    "ExtractedFrame",
    "ReferenceImage",
    "VideoSource",
    "CollectionStore",
    "CollectionExportError",
    "CollectionImportError",
    "build_image_archive",
    "export_collection",
    "import_collection",
]
