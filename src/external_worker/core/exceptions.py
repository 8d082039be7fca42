from external_worker.core.models.gateway_error import GatewayErrorResponse


class GatewayException(Exception):
    """Raised by the HTTP layer when a call to the job API fails."""
    def __init__(self, response: GatewayErrorResponse):
        self.response = response
        super().__init__(str(response))


class WorkerConfigurationError(Exception):
    """Raised when client or subscription settings are inconsistent."""


class HandlerImportError(WorkerConfigurationError):
    """Raised when the configured job handler cannot be imported.

    Attributes:
        handler_path: The `module:function` reference that failed to load
    """
    def __init__(self, handler_path: str, reason: str):
        self.handler_path = handler_path
        super().__init__(f"Cannot load job handler '{handler_path}': {reason}")
