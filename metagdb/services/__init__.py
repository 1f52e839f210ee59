from .import_service import ImportService, ImportResult, run_taxonomy_import

__all__ = ["ImportService", "ImportResult", "run_taxonomy_import"]
