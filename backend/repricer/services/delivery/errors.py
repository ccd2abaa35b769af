class DeliveryCostError(Exception):
    """Base for delivery cost errors raised to callers."""


class CarrierNotFoundError(DeliveryCostError):
    def __init__(self, account_id: str, carrier_id: str):
        self.account_id = account_id
        self.carrier_id = carrier_id
        super().__init__(f"carrier '{carrier_id}' not configured for account '{account_id}'")


class InvalidManifestError(DeliveryCostError):
    pass
