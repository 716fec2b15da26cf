from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class HistoryPoint(BaseModel):
    x: int
    y: float


class QuoteSuccess(_CamelModel):
    symbol: str
    price: float
    change_amount: float
    change_percent: float
    open: float | None = None
    high: float | None = None
    low: float | None = None
    prev_close: float | None = None
    last_trade_time: str | None = None
    historical_data: list[HistoryPoint] | list[float] | None = None


class QuoteFailure(_CamelModel):
    symbol: str
    error: str


QuoteResult = QuoteSuccess | QuoteFailure


class AggregateResponse(BaseModel):
    status_code: int
    body: str
    headers: dict[str, str] = Field(default_factory=dict)
