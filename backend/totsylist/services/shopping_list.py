"""Shopping list pipeline: prompt, generate, normalize, validate.

1. Fill the prompt template with the parent's request
2. Ask Gemini for the list (GenerationClient)
3. Strip markdown code fences from the reply
4. Parse JSON and validate it against ShoppingList
5. On any typed failure, the route answers with build_fallback()

Stateless: all inputs passed in, output returned.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from totsylist.errors import (
    ConfigurationError,
    MalformedOutputError,
    SchemaMismatchError,
    ShoppingListError,
)
from totsylist.models.contracts import (
    MAX_CATEGORIES,
    MAX_ITEMS_PER_CATEGORY,
    MIN_CATEGORIES,
    FallbackShoppingList,
    ListSummary,
    ShoppingList,
)

if TYPE_CHECKING:
    from totsylist.utils.gemini_client import GenerationClient

log = structlog.get_logger("shopping_list")

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"
PREVIEW_CHARS = 200
MAX_REPORTED_VALIDATION_ERRORS = 3

# === Step 1: Prompt ===

_prompt_template_cache: str | None = None


def _load_prompt_template() -> str:
    global _prompt_template_cache  # noqa: PLW0603
    if _prompt_template_cache is None:
        _prompt_template_cache = (PROMPTS_DIR / "shopping_list.txt").read_text()
    return _prompt_template_cache


def build_prompt(user_input: str) -> str:
    """Fill the shopping list prompt with the parent's request, verbatim."""
    return _load_prompt_template().format(
        user_input=user_input,
        min_categories=MIN_CATEGORIES,
        max_categories=MAX_CATEGORIES,
        max_items=MAX_ITEMS_PER_CATEGORY,
    )


# === Steps 3-4: Normalize ===


def strip_code_fence(text: str) -> str:
    """Remove one markdown code fence wrapped around a model reply.

    Handles a ```json (any case) opener, a plain ``` opener, and the
    single-line form ```{...}```. Unfenced text is only trimmed.
    """
    text = text.strip()
    if not text.startswith("```"):
        return text
    text = text.removeprefix("```")
    if text[:4].lower() == "json":
        text = text[4:]
    text = text.removeprefix("\n")
    text = text.removesuffix("```")
    return text.strip()


def _summarize_validation_error(exc: ValidationError) -> str:
    messages = []
    for err in exc.errors()[:MAX_REPORTED_VALIDATION_ERRORS]:
        loc = ".".join(str(part) for part in err["loc"]) or "<root>"
        messages.append(f"{loc}: {err['msg']}")
    remaining = exc.error_count() - len(messages)
    if remaining > 0:
        messages.append(f"and {remaining} more")
    return "; ".join(messages)


def _cap_category_items(shopping_list: ShoppingList) -> ShoppingList:
    """Keep the top-ranked items of each category (the reply is ranked already)."""
    for category in shopping_list.categories:
        if len(category.items) > MAX_ITEMS_PER_CATEGORY:
            log.warning(
                "shopping_list_category_truncated",
                category=category.category,
                item_count=len(category.items),
                kept=MAX_ITEMS_PER_CATEGORY,
            )
            category.items = category.items[:MAX_ITEMS_PER_CATEGORY]
    return shopping_list


def parse_shopping_list(text: str) -> ShoppingList:
    """Turn a raw model reply into a validated ShoppingList.

    Raises MalformedOutputError when the fence-stripped text is not JSON and
    SchemaMismatchError when it is JSON but not a shopping list. There is no
    partial recovery: prose around the fence or a truncated reply fails.
    """
    cleaned = strip_code_fence(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise MalformedOutputError(
            f"Model response was not valid JSON: {exc.msg} at line {exc.lineno} column {exc.colno}"
        ) from exc

    if not isinstance(data, dict):
        raise SchemaMismatchError(f"Expected a JSON object, got {type(data).__name__}")

    try:
        shopping_list = ShoppingList.model_validate(data)
    except ValidationError as exc:
        raise SchemaMismatchError(
            f"Model response did not match the shopping list schema: "
            f"{_summarize_validation_error(exc)}"
        ) from exc

    return _cap_category_items(shopping_list)


# === Pipeline ===


async def generate_shopping_list(client: GenerationClient, user_input: str) -> ShoppingList:
    """Build the prompt, call Gemini, and return the validated list.

    Typed ShoppingListError subclasses propagate to the caller.
    """
    log.info("shopping_list_start", model=client.model, input_chars=len(user_input))

    prompt = build_prompt(user_input)
    text = await client.generate(prompt)
    log.debug("shopping_list_raw_response", preview=text[:PREVIEW_CHARS])

    try:
        shopping_list = parse_shopping_list(text)
    except (MalformedOutputError, SchemaMismatchError) as exc:
        log.warning(
            "shopping_list_unusable_response",
            model=client.model,
            error=exc.code,
            reason=exc.message,
            preview=text[:PREVIEW_CHARS],
        )
        raise

    log.info(
        "shopping_list_complete",
        model=client.model,
        categories=len(shopping_list.categories),
        items=sum(len(c.items) for c in shopping_list.categories),
    )
    return shopping_list


# === Step 5: Fallback ===

_FALLBACK_HINTS: dict[str, str] = {
    ConfigurationError.code: "Please check your API key.",
}
_DEFAULT_FALLBACK_HINT = "Please try again in a moment."


def build_fallback(error: ShoppingListError) -> FallbackShoppingList:
    """Schema-shaped body for a failed request, with the error explained."""
    hint = _FALLBACK_HINTS.get(error.code, _DEFAULT_FALLBACK_HINT)
    return FallbackShoppingList(
        summary=ListSummary(
            due_date="Error occurred",
            budget="unknown",
            key_prefs=[],
            disclaimers=[f"Could not generate your list: {error.message}. {hint}"],
        ),
        categories=[],
        error=error.code,
        message=error.message,
        retryable=error.retryable,
    )
