from .base_repository import BaseRepository, chunked
from .change_repository import ChangeRepository
from .sequence_repository import SequenceRepository
from .classification_repository import ClassificationRepository
from .taxonomy_repository import TaxonomyRepository
from .taxclass_repository import TaxclassRepository

__all__ = [
    "BaseRepository",
    "chunked",
    "ChangeRepository",
    "SequenceRepository",
    "ClassificationRepository",
    "TaxonomyRepository",
    "TaxclassRepository",
]
