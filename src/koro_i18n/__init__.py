"""Authentication and session service for the koro i18n platform."""

__version__ = "0.3.0"
