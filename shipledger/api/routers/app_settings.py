"""
API Routers - exchange rates, per-kilo prices and price quotes.
"""

from fastapi import APIRouter, Depends

from shipledger.api.dependencies import get_settings_use_cases
from shipledger.application.dto.ledger_dto import (
    AppSettingsDTO,
    CardPriceDTO,
    CardPriceRequestDTO,
    ConversionResultDTO,
    ConvertRequestDTO,
    InstantSaleQuoteDTO,
    InstantSaleRequestDTO,
    OrderQuoteDTO,
    OrderQuoteRequestDTO,
    SettingsUpdateDTO,
)
from shipledger.application.use_cases import SettingsUseCases

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("", response_model=AppSettingsDTO)
def get_app_settings(settings: SettingsUseCases = Depends(get_settings_use_cases)):
    return AppSettingsDTO.model_validate(settings.get_settings())


@router.patch("", response_model=AppSettingsDTO)
def update_app_settings(dto: SettingsUpdateDTO, settings: SettingsUseCases = Depends(get_settings_use_cases)):
    """
    Partial update. Rates must be positive; the cached snapshot is dropped
    so the next read sees the new values.
    """
    updated = settings.update_settings(dto.model_dump(exclude_none=True))
    return AppSettingsDTO.model_validate(updated)


@router.post("/convert", response_model=ConversionResultDTO)
def convert(dto: ConvertRequestDTO, settings: SettingsUseCases = Depends(get_settings_use_cases)):
    """Convert USD to LYD or LYD to USD at the chosen channel rate."""
    result = settings.convert(dto.amount, dto.currency, dto.channel)
    return ConversionResultDTO(
        amount=result.amount,
        currency=result.currency,
        rate=settings.rate(dto.channel).rate,
        channel=dto.channel,
    )


@router.post("/quote-order", response_model=OrderQuoteDTO)
def quote_order(dto: OrderQuoteRequestDTO, settings: SettingsUseCases = Depends(get_settings_use_cases)):
    quote = settings.quote_order(
        selling_price_lyd=dto.selling_price_lyd,
        purchase_price_usd=dto.purchase_price_usd,
        weight_kg=dto.weight_kg,
        shipping_currency=dto.shipping_currency,
        customer_price_per_kilo=dto.customer_price_per_kilo,
        added_cost_usd=dto.added_cost_usd,
        down_payment_lyd=dto.down_payment_lyd,
        cost_channel=dto.cost_channel,
    )
    return OrderQuoteDTO.from_domain(quote)


@router.post("/quote-instant-sale", response_model=InstantSaleQuoteDTO)
def quote_instant_sale(dto: InstantSaleRequestDTO, settings: SettingsUseCases = Depends(get_settings_use_cases)):
    quote = settings.quote_instant_sale(
        cost_usd=dto.cost_usd,
        sale_price=dto.sale_price,
        sale_currency=dto.sale_currency,
        cost_channel=dto.cost_channel,
        sale_rate=dto.sale_rate,
    )
    return InstantSaleQuoteDTO.from_domain(quote)


@router.post("/price-card", response_model=CardPriceDTO)
def price_card(dto: CardPriceRequestDTO, settings: SettingsUseCases = Depends(get_settings_use_cases)):
    price = settings.price_card(dto.cost_usd, dto.margin_percent, dto.channel)
    return CardPriceDTO(price_lyd=price.amount, channel=dto.channel)
