"""Application layer - Use cases and DTOs."""

from shipledger.application.use_cases import (
    AppSettingsCache,
    CreditorUseCases,
    CustodyUseCases,
    CustomerUseCases,
    DepositUseCases,
    OrderUseCases,
    SettingsUseCases,
    StatementUseCases,
    TempOrderUseCases,
)
