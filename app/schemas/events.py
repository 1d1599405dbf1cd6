"""
Webhook delivery schemas.

Inbound events are a tagged union over the categories the engine
indexes. The tag is the event "type" field; an event without one is a
plain transaction. Any other tag is rejected at the receiver boundary.
"""

from decimal import Decimal
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from app.utils.exceptions import ValidationError


TRANSACTION_TAG = "TRANSACTION"
NFT_TAG = "NFT"
TOKEN_TAG = "TOKEN"


class _ProviderModel(BaseModel):
    """Provider payloads are camelCase and carry extra fields we ignore."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class NftDetails(_ProviderModel):
    mint: str = ""
    owner: str | None = None


class TokenTransferLeg(_ProviderModel):
    mint: str = ""
    from_user_account: str = ""
    to_user_account: str = ""
    token_amount: Decimal = Decimal(0)


class _BaseEvent(_ProviderModel):
    """Fields shared by every event; enough to store a transaction row."""

    signature: str = Field(..., min_length=1)
    slot: int = Field(default=0, ge=0)
    timestamp: int = Field(..., ge=0, description="Unix seconds")
    fee: int = Field(default=0, ge=0)
    description: str = ""
    err: Any = None
    logs: list[str] = Field(default_factory=list)
    program_ids: list[str] = Field(default_factory=list)
    accounts: list[str] = Field(default_factory=list)


class TransactionEvent(_BaseEvent):
    type: Literal["TRANSACTION"] = TRANSACTION_TAG


class NftEvent(_BaseEvent):
    type: Literal["NFT"]
    nft: NftDetails | None = None
    amount: Decimal | None = None

    @property
    def nft_type(self) -> str:
        """mint, sale or transfer, derived from the description."""
        if "Mint" in self.description:
            return "mint"
        if "Sale" in self.description:
            return "sale"
        return "transfer"


class TokenEvent(_BaseEvent):
    type: Literal["TOKEN"]
    token_transfers: list[TokenTransferLeg] = Field(..., min_length=1)

    @property
    def transfer_type(self) -> str:
        """swap when several legs move together, otherwise transfer."""
        return "swap" if len(self.token_transfers) > 1 else "transfer"


def _event_tag(value: Any) -> str | None:
    if isinstance(value, dict):
        return value.get("type") or TRANSACTION_TAG
    return getattr(value, "type", None)


HeliusEvent = Annotated[
    Union[
        Annotated[TransactionEvent, Tag(TRANSACTION_TAG)],
        Annotated[NftEvent, Tag(NFT_TAG)],
        Annotated[TokenEvent, Tag(TOKEN_TAG)],
    ],
    Discriminator(_event_tag),
]


class DeliveryPayload(BaseModel):
    """One delivery envelope: subscription ID plus its events."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    webhook_id: str = Field(..., alias="webhookId", min_length=1)
    events: list[HeliusEvent]


def _summarize(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors()[:3]:
        location = ".".join(str(part) for part in item["loc"])
        parts.append(f"{location}: {item['msg']}" if location else item["msg"])
    return "; ".join(parts)


def parse_delivery(body: Any) -> list[DeliveryPayload]:
    """
    Validate a delivery body.

    Args:
        body: Decoded JSON, an envelope object or a non-empty list of them

    Returns:
        Validated envelopes

    Raises:
        ValidationError: If the body does not match the schema
    """
    if isinstance(body, dict):
        items = [body]
    elif isinstance(body, list) and body:
        items = body
    else:
        raise ValidationError(
            "Invalid webhook payload: expected an object with webhookId and events"
        )

    envelopes = []
    for index, item in enumerate(items):
        try:
            envelopes.append(DeliveryPayload.model_validate(item))
        except PydanticValidationError as e:
            prefix = f"[{index}] " if len(items) > 1 else ""
            raise ValidationError(
                f"Invalid webhook payload: {prefix}{_summarize(e)}"
            ) from e
    return envelopes
