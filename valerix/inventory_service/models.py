from pydantic import BaseModel, ConfigDict, Field, StrictInt


class ReserveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: str | None = Field(None, alias="orderId")
    item_id: str | None = Field(None, alias="itemId")
    quantity: StrictInt | None = None


class ReserveResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transaction_id: str = Field(serialization_alias="transactionId")
    order_id: str = Field(serialization_alias="orderId")
    item_id: str = Field(serialization_alias="itemId")
    quantity: int
    duplicate: bool = False


class GremlinRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool
    min_latency_ms: int | None = Field(None, alias="minLatencyMs")
    max_latency_ms: int | None = Field(None, alias="maxLatencyMs")


class SchrodingerRequest(BaseModel):
    enabled: bool
    probability: float | None = None
