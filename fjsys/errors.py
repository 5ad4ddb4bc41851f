class FjsysError(Exception):
    """Base class for FJSYS-specific errors."""


# Structure
class FormatError(FjsysError):
    pass


# Codecs
class CodecError(FjsysError):
    def __init__(self, message: str, codec: str = ""):
        super().__init__(message)
        self.codec = codec


class UnknownKeyError(FjsysError, KeyError):
    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"unknown key: {self.name}"
