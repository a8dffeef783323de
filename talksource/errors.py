class SourceNotLoadedError(ValueError):
    """
    Raised when an operation that needs the source wikitext is called without it.
    Callers must load the page (or section) code before locating anything in it.
    """
