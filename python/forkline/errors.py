"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
Tree, bundle and store failures share the same envelope so routes never
translate exceptions themselves.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_STORY_NOT_FOUND = "E_STORY_NOT_FOUND"
    E_NODE_NOT_FOUND = "E_NODE_NOT_FOUND"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_INVALID_BUNDLE = "E_INVALID_BUNDLE"
    E_INVALID_PATH = "E_INVALID_PATH"

    # Tree invariant violations (422)
    E_TREE_STRUCTURE = "E_TREE_STRUCTURE"

    # Server errors
    E_INTERNAL = "E_INTERNAL"  # 500
    E_STORE_ERROR = "E_STORE_ERROR"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_STORY_NOT_FOUND: 404,
    ApiErrorCode.E_NODE_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_INVALID_BUNDLE: 400,
    ApiErrorCode.E_INVALID_PATH: 400,
    ApiErrorCode.E_TREE_STRUCTURE: 422,
    ApiErrorCode.E_INTERNAL: 500,
    ApiErrorCode.E_STORE_ERROR: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ApiErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST, message: str = "Invalid request"
    ):
        super().__init__(code, message)


class BundleValidationError(InvalidRequestError):
    """Malformed or incomplete import bundle.

    Raised before any write happens, so a rejected import leaves no trace.
    """

    def __init__(self, message: str = "Invalid story bundle"):
        super().__init__(ApiErrorCode.E_INVALID_BUNDLE, message)


class InvalidPathError(InvalidRequestError):
    """A choice path or path key contains something other than A/B labels."""

    def __init__(self, message: str = "Invalid path"):
        super().__init__(ApiErrorCode.E_INVALID_PATH, message)


class StructuralError(ApiError):
    """A branching-tree invariant is violated by the persisted node records.

    Attributes:
        node_id: The offending node (or parent group) id, when known.
    """

    def __init__(self, message: str, node_id: str | None = None):
        super().__init__(ApiErrorCode.E_TREE_STRUCTURE, message)
        self.node_id = node_id


class StoreError(ApiError):
    """The underlying store failed to fetch or write records.

    Attributes:
        operation: Store operation that failed (e.g. "insert_node").
    """

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(ApiErrorCode.E_STORE_ERROR, message)
        self.operation = operation
