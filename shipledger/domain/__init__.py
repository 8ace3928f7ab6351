"""Domain layer - Pure Python ledger logic."""

from shipledger.domain.entities import (
    AppSettings,
    Creditor,
    Customer,
    Deposit,
    ExternalDebt,
    Order,
    Representative,
    SubOrder,
    TempOrder,
    Transaction,
)
from shipledger.domain.errors import (
    DoubleMerge,
    IllegalTransition,
    Inconsistent,
    InvalidAmount,
    InvalidRate,
    LedgerError,
    NotFound,
    OverPayment,
)
from shipledger.domain.services import (
    CreditorLedgerService,
    CustodyService,
    DepositService,
    ExchangeRateService,
    ILedgerRepository,
    OrderLedgerService,
    TempOrderService,
)
from shipledger.domain.value_objects import (
    Currency,
    ExchangeRate,
    Money,
    OrderStatus,
    RateChannel,
)
