from .coordinator import BackendState, Dispatcher

__all__ = ["BackendState", "Dispatcher"]
