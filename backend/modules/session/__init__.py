"""
modules/session package — one editing session per open itinerary.
"""
from modules.session.editor import ItineraryEditor, LoadTicket, PersistenceValidationError
from modules.session.background_loader import DebouncedLoader, repository_fetch, suggestion_fetch

__all__ = [
    "ItineraryEditor",
    "LoadTicket",
    "PersistenceValidationError",
    "DebouncedLoader",
    "repository_fetch",
    "suggestion_fetch",
]
