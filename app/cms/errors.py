from __future__ import annotations


class ErrorCode:
    ERR_USER_GROUP_NAMES_EMPTY = "ERR_USER_GROUP_NAMES_EMPTY"
    BAD_NAME = "BAD_NAME"
    NOT_EMPTY = "NOT_EMPTY"
    NOT_FOUND = "NOT_FOUND"
    XML_MALFORMED = "XML_MALFORMED"
    XML_INVALID = "XML_INVALID"
    RPC_FAILED = "RPC_FAILED"
    UNKNOWN = "UNKNOWN"


class CmsError(Exception):
    """
    Application error carrying a machine readable code.

    Callers branch on `code` to pick the message shown to the user.
    """

    def __init__(self, code: str = ErrorCode.UNKNOWN, message: str | None = None):
        self.code = code
        self.message = message
        super().__init__(message or code)

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message or self.code}


class CmsRuntimeError(CmsError, RuntimeError):
    pass


class CmsXmlError(CmsError):
    pass
