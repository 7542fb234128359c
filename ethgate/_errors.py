class GatewayError(Exception):
    """The base class for errors raised while serving a contract request."""


class ABIParseError(GatewayError):
    """Raised when the ABI document is malformed or has no constructor."""


class InvalidParam(GatewayError):
    """
    Raised when the caller-supplied arguments cannot be matched against the ABI:
    arity mismatch, an unsupported JSON shape, a non-integer number,
    a string that has no conversion for its declared type, or a malformed request field.
    """


class ConversionError(GatewayError):
    """
    Raised when a string could not be parsed into its declared chain type
    (an address or a 256-bit integer).
    The original exception is available as ``__cause__``.
    """

    def __init__(self, value: str, declared_type: str, cause: Exception):
        super().__init__(str(cause))
        self.value = value
        self.declared_type = declared_type


class ContractNotFound(GatewayError):
    """Raised when there are no ABI or bytecode files for the requested contract name."""

    def __init__(self, contract_name: str, path: str):
        super().__init__(f"Contract `{contract_name}` not found (looked for {path})")
        self.contract_name = contract_name


class ChainError(GatewayError):
    """Raised when the node or the client library reported an error."""


class TransactionFailed(ChainError):
    """Raised when a transaction was mined but its execution failed."""
