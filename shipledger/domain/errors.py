"""
Domain errors. Computations report failures as these types;
the presentation layer decides how to show them.
"""


class LedgerError(ValueError):
    """Base class for ledger failures."""


class NotFound(LedgerError):
    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found")


class InvalidRate(LedgerError):
    pass


class InvalidAmount(LedgerError):
    pass


class IllegalTransition(LedgerError):
    def __init__(self, entity: str, current: str, target: str, hint: str = ""):
        self.entity = entity
        self.current = current
        self.target = target
        message = f"Illegal {entity} transition: {current} -> {target}"
        super().__init__(f"{message} ({hint})" if hint else message)


class OverPayment(LedgerError):
    pass


class DoubleMerge(LedgerError):
    pass


class Inconsistent(LedgerError):
    """Orphaned record. Returned and logged, never raised by computations."""

    def __init__(self, record_type: str, record_id: str, missing_parent: str):
        self.record_type = record_type
        self.record_id = record_id
        self.missing_parent = missing_parent
        super().__init__(
            f"{record_type} '{record_id}' references missing parent '{missing_parent}'"
        )
