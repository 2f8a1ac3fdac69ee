# =============================================================================
# stock_core/data/__init__.py
# Backup files (manual export / import)
# =============================================================================

from .backup import backup_filename, export_snapshot, load_backup

__all__ = ["backup_filename", "export_snapshot", "load_backup"]
