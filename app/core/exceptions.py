"""Domain exceptions for the risk engine"""


class RiskEngineError(Exception):
    """Base exception for the risk engine"""

    pass


class ClientNotFoundError(RiskEngineError):
    """Referenced client does not exist in the caller's organization"""

    def __init__(self, client_id: str):
        super().__init__(f"Client {client_id} not found")
        self.client_id = client_id


class InvalidConfigurationError(RiskEngineError):
    """Risk configuration violates threshold ordering or weight bounds"""

    pass


class InputDegradedError(RiskEngineError):
    """A collaborator input is unavailable; scored as uncertain, never surfaced"""

    pass


class BatchTooLargeError(RiskEngineError):
    """Bulk request exceeds the admitted batch size"""

    pass
