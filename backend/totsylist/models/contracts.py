"""TotsyList API contract models.

The web client depends on these shapes. The success and fallback bodies share
the ``summary`` / ``categories`` layout so the client can render either one.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, NonNegativeFloat, NonNegativeInt

MIN_CATEGORIES = 3
MAX_CATEGORIES = 10
MAX_ITEMS_PER_CATEGORY = 10

# === Request ===


class GenerateListRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_input: str = Field(alias="userInput")  # any text, embedded verbatim in the prompt


# === Shopping List ===

# Provider keys outside the contract are kept so a conforming reply is returned as sent.
_PASS_THROUGH = ConfigDict(extra="allow")


class ListSummary(BaseModel):
    model_config = _PASS_THROUGH

    due_date: str  # the detected activity or situation, not necessarily a date
    budget: str = "unknown"
    key_prefs: list[str] = []
    disclaimers: list[str] = []


class ProductItem(BaseModel):
    model_config = _PASS_THROUGH

    name: str
    brand: str
    why: str
    eco_friendly: bool
    est_price_usd: NonNegativeInt | NonNegativeFloat  # int stays int on the way out
    url: str  # passed through unverified


class ProductCategory(BaseModel):
    model_config = _PASS_THROUGH

    category: str
    priority: Literal["essential", "nice_to_have"]
    items: list[ProductItem]  # ranked most important first


class ShoppingList(BaseModel):
    model_config = _PASS_THROUGH

    summary: ListSummary
    categories: list[ProductCategory] = Field(
        min_length=MIN_CATEGORIES,
        max_length=MAX_CATEGORIES,
    )


# === Errors ===


class ErrorResponse(BaseModel):
    error: str
    message: str
    retryable: bool


class FallbackShoppingList(BaseModel):
    """Body returned when a list could not be generated.

    Same layout as ShoppingList (empty ``categories``, the failure explained
    in ``summary.disclaimers``) plus the ErrorResponse envelope fields.
    """

    summary: ListSummary
    categories: list[ProductCategory] = []
    error: str
    message: str
    retryable: bool


# === Introspection ===


class GenerateListStatus(BaseModel):
    ok: bool = True
    where: str
    has_api_key: bool
    model: str
