class OscarError(Exception):
    """Base class for every error raised by tedge-oscar operations."""


class InvalidReferenceError(OscarError):
    def __init__(self, reference: str, reason: str):
        self.reference: str = reference
        super().__init__(f"Invalid reference '{reference}': {reason}")


class RegistryError(OscarError):
    def __init__(self, reference: str, message: str):
        self.reference: str = reference
        super().__init__(f"{message} (reference: {reference})")


class AuthError(RegistryError):
    pass


class NetworkError(RegistryError):
    pass


class NotFoundError(OscarError):
    pass


class FetchError(OscarError):
    pass


class CorruptArchiveError(OscarError):
    pass


class LocalWriteError(OscarError):
    pass


class ArtifactMissingError(OscarError):
    pass


class TemplateError(OscarError):
    pass


class ConfigError(OscarError):
    pass
