class ApplicationError(Exception):
    """An internal failure after the admission decision was made."""
