# core/json_repair.py
import json
import logging
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_fences(text: str) -> str:
    return _FENCE.sub("", text or "").strip()


def balance_brackets(text: str) -> str:
    """
    Close any braces/brackets left open by a truncated model response.
    Characters inside string literals are ignored; nothing else is rewritten.
    """
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
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append("}" if ch == "{" else "]")
        elif ch in "}]" and stack and stack[-1] == ch:
            stack.pop()

    tail = '"' if in_string else ""
    return text + tail + "".join(reversed(stack))


def safe_json_parse(text: str) -> Optional[Any]:
    """
    Parse model output as JSON: direct parse first, then fence stripping,
    then bracket balancing. Returns None when all three fail.
    """
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        pass

    cleaned = strip_fences(text)
    try:
        return json.loads(cleaned)
    except ValueError:
        pass

    repaired = balance_brackets(cleaned)
    try:
        value = json.loads(repaired)
        logger.info("json.repair.balanced added=%d", len(repaired) - len(cleaned))
        return value
    except ValueError:
        logger.warning("json.repair.failed len=%d", len(text or ""))
        return None
