"""Payment transaction ledger for the travel-booking marketplace."""

__version__ = "0.1.0"
