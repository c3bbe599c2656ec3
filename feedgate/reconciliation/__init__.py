from .engine import IngestionReport, ReconciliationEngine

__all__ = ["ReconciliationEngine", "IngestionReport"]
