from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

TextModel = Callable[[str], str]

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?\s*```$", re.DOTALL)


class ModelOutputError(ValueError):
    """The model replied, but not with something we can use."""


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```/```json fence, if any."""
    stripped = text.strip()
    match = _FENCE_RE.match(stripped)
    return match.group(1).strip() if match else stripped


def parse_model_json(text: str) -> Any:
    try:
        return json.loads(strip_code_fences(text))
    except (TypeError, ValueError, RecursionError) as exc:
        raise ModelOutputError("Model output is not valid JSON") from exc


class ModelWithFallback(Generic[T]):
    """
    Try a model-backed adapter and fall back to a rule-based one.

    Both adapters share a call signature. The rule-based adapter must not
    raise; anything the model adapter raises (transport failure, timeout,
    ``ModelOutputError``) routes the call to it.
    """

    def __init__(
        self,
        primary: Callable[..., T] | None,
        fallback: Callable[..., T],
        name: str,
    ) -> None:
        self.primary = primary
        self.fallback = fallback
        self.name = name

    def __call__(self, *args: Any, **kwargs: Any) -> T:
        if self.primary is not None:
            try:
                return self.primary(*args, **kwargs)
            except Exception:
                logger.warning("%s: model adapter failed, using rule set", self.name, exc_info=True)
        return self.fallback(*args, **kwargs)
