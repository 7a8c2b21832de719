"""
Exceptions raised while cloning a website
"""


class CloneError(Exception):
    """Base class for every failure that aborts (or is reported by) a clone run"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CloneError, ValueError):
    """The target URL is malformed or not HTTP(S)"""


class FetchError(CloneError):
    """A network retrieval failed"""


class RenderError(FetchError):
    """Neither the static fetch nor the headless render produced a document"""


class AssetFetchError(FetchError):
    """A single asset could not be retrieved"""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch asset {url}: {reason}")
        self.url = url
        self.reason = reason


class PersistenceError(CloneError):
    """Writing the document, an asset or the archive to disk failed"""
