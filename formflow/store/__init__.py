from formflow.store.state import PersistenceBackend, ProgressStore

__all__ = ["PersistenceBackend", "ProgressStore"]
