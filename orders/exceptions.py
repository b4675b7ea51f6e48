class OrderError(Exception):
    """Base class for failures raised by the order lifecycle."""

    status_code = 500


class ValidationError(OrderError):
    """Order input is malformed; the order is not created."""

    status_code = 400


class NotFound(OrderError):
    status_code = 404


class InvalidTransition(OrderError):
    """The requested status is not the immediate successor of the current one."""

    status_code = 409


class RemoteUnavailable(OrderError):
    """The document store or subscription channel failed (network, permission)."""

    status_code = 503
