from pydantic import BaseModel, ConfigDict, Field, StrictInt


class OrderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    item_id: str | None = Field(None, alias="itemId")
    quantity: StrictInt | None = None
    order_id: str | None = Field(None, alias="orderId")


class ConfigRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    deadline_ms: int | None = Field(None, alias="deadlineMs", gt=0)
