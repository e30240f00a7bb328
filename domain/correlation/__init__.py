from .store import CorrelationStore, PAYER_ACTION_META_KEY

__all__ = ["CorrelationStore", "PAYER_ACTION_META_KEY"]
