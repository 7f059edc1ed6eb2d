"""
Repair of layout JSON produced by an LLM.

Repairs are applied only when a direct parse fails, in increasing order of
invasiveness:

1. strip a fenced code block wrapper and slice to the outermost ``{...}`` span
2. drop trailing commas before a closing bracket
3. balance the document: scan it tracking string state (with escapes) and a
   stack of open brackets, close an unterminated string, fix mismatched
   closers and close still-open brackets in LIFO order

Each step is a plain function over text so it can be tested in isolation.
The scanner is a single left-to-right pass, so repair cost is linear in the
input size.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

_CLOSERS = {"{": "}", "[": "]"}
_OPENERS = {"}": "{", "]": "["}

# Inputs above this size are not worth repairing
MAX_REPAIR_INPUT = 2_000_000


class RepairStep(StrEnum):
    """Repair steps, in the order they are attempted."""

    DIRECT = "direct"
    UNWRAP = "unwrap"
    TRAILING_COMMAS = "trailing_commas"
    BALANCE = "balance"


class JSONRepairError(ValueError):
    """Raised when every repair step failed."""

    def __init__(self, message: str, attempts: list[RepairStep]):
        self.attempts = attempts
        super().__init__(message)


@dataclass
class RepairResult:
    """Parsed value plus the repair steps that were needed to get it."""

    value: Any
    steps: list[RepairStep] = field(default_factory=list)

    @property
    def repaired(self) -> bool:
        return self.steps != [RepairStep.DIRECT]


# =============================================================================
# Individual steps
# =============================================================================


def strip_code_fence(text: str) -> str:
    """Remove a Markdown code fence (```json ... ```) around the payload."""
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    lines = stripped.split("\n")
    body = lines[1:]
    if body and body[-1].strip().startswith("```"):
        body = body[:-1]
    return "\n".join(body).strip()


def slice_outer_span(text: str) -> str:
    """
    Slice to the outermost JSON container.

    Starts at the first ``{`` (or ``[`` when an array comes first) and ends at
    the last matching closer. A document that never closes is kept to the end
    so the balancing step can finish it.
    """
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        return text
    start = min(starts)
    closer = _CLOSERS[text[start]]
    end = text.rfind(closer)
    if end < start:
        return text[start:]
    return text[start : end + 1]


def strip_trailing_commas(text: str) -> str:
    """Drop commas that directly precede a closing bracket, outside strings."""
    out: list[str] = []
    in_string = False
    escaped = False
    pending_comma: int | None = None

    for ch in text:
        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch in "}]" and pending_comma is not None:
            del out[pending_comma]
            pending_comma = None
        elif ch == ",":
            pending_comma = len(out)
        elif not ch.isspace():
            pending_comma = None

        if ch == '"':
            in_string = True
        out.append(ch)

    return "".join(out)


def balance_brackets(text: str) -> str:
    """
    Close whatever the producer left open.

    - an unterminated string gets a closing quote (a dangling escape is dropped)
    - a closer that does not match the innermost open bracket closes the
      brackets above it when it matches one further down the stack, and is
      dropped otherwise
    - brackets still open at the end are closed innermost first
    """
    out: list[str] = []
    stack: list[str] = []
    in_string = False
    escaped = False

    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            out.append(ch)
            continue

        if ch == '"':
            in_string = True
            out.append(ch)
        elif ch in _CLOSERS:
            stack.append(ch)
            out.append(ch)
        elif ch in _OPENERS:
            opener = _OPENERS[ch]
            if opener not in stack:
                continue
            while stack[-1] != opener:
                out.append(_CLOSERS[stack.pop()])
            stack.pop()
            out.append(ch)
        else:
            out.append(ch)

    if in_string:
        if escaped:
            out.pop()
        out.append('"')

    tail = "".join(out).rstrip()
    if tail.endswith(":"):
        tail += " null"
    closing = "".join(_CLOSERS[opener] for opener in reversed(stack))
    return strip_trailing_commas(tail + closing)


# =============================================================================
# Driver
# =============================================================================


def _try_parse(text: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        return False, None


def repair_json(text: str) -> RepairResult:
    """
    Parse ``text``, repairing common producer defects if needed.

    Raises:
        JSONRepairError: when the text stays unparsable after every step
    """
    attempts: list[RepairStep] = [RepairStep.DIRECT]
    ok, value = _try_parse(text)
    if ok:
        return RepairResult(value=value, steps=attempts)

    if len(text) > MAX_REPAIR_INPUT:
        raise JSONRepairError("layout text too large to repair", attempts)

    candidate = slice_outer_span(strip_code_fence(text))
    attempts.append(RepairStep.UNWRAP)
    ok, value = _try_parse(candidate)
    if ok:
        return RepairResult(value=value, steps=attempts)

    candidate = strip_trailing_commas(candidate)
    attempts.append(RepairStep.TRAILING_COMMAS)
    ok, value = _try_parse(candidate)
    if ok:
        return RepairResult(value=value, steps=attempts)

    candidate = balance_brackets(candidate)
    attempts.append(RepairStep.BALANCE)
    ok, value = _try_parse(candidate)
    if ok:
        logger.debug("Layout JSON repaired after %s", [s.value for s in attempts])
        return RepairResult(value=value, steps=attempts)

    raise JSONRepairError("unparsable", attempts)
