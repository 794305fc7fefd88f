"""
Custom Exception Classes for Media Monitor Application

This module defines custom exceptions for better error handling and
categorization of failures across the screenshot monitoring pipeline.
"""


class MediaMonitorError(Exception):
    """Base exception for all Media Monitor application errors."""
    pass


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(MediaMonitorError):
    """Raised when configuration validation fails or required settings are missing."""
    pass


# =============================================================================
# Capture Errors
# =============================================================================

class CaptureError(MediaMonitorError):
    """Base exception for browser capture errors."""
    pass


class NavigationError(CaptureError):
    """Raised when a page cannot be loaded with any navigation strategy."""
    pass


class ScreenshotError(CaptureError):
    """Raised when the full-page screenshot cannot be written."""
    pass


# =============================================================================
# Extraction and Analysis Errors
# =============================================================================

class ExtractionError(MediaMonitorError):
    """Raised when story extraction fails for a whole page."""
    pass


class HashingError(MediaMonitorError):
    """Raised when an image cannot be downloaded or decoded for hashing."""
    pass


# =============================================================================
# Notification Errors
# =============================================================================

class NotificationError(MediaMonitorError):
    """Raised when a Slack notification is rejected by the API."""
    pass


# =============================================================================
# AI Service Errors
# =============================================================================

class AIServiceError(MediaMonitorError):
    """Base exception for generative cross-check errors."""
    pass


# =============================================================================
# Database Errors
# =============================================================================

class DatabaseError(MediaMonitorError):
    """Base exception for database-related errors."""
    pass


class ConnectionError(DatabaseError):
    """Raised when database connection fails."""
    pass


class QueryError(DatabaseError):
    """Raised when a database query fails."""
    pass
