"""
Human-readable function signatures to JSON ABI entries.

Accepts `function balanceOf(address owner) view returns (uint256)`. The
`function` keyword, parameter names and modifiers are optional, and tuple
parameters may be written inline as `(uint256 amount, address to)[]`.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List

from eth_abi.exceptions import ABITypeError, ParseError
from eth_abi.grammar import normalize, parse

from errors import MalformedInput

_NAME_RE = re.compile(r"^(?:function\s+)?([A-Za-z_$][A-Za-z0-9_$]*)\s*\(")
_ARRAY_SUFFIX_RE = re.compile(r"^(?:\[[0-9]*\])*")
_MUTABILITY = ("view", "pure", "payable", "nonpayable")
_VISIBILITY = ("external", "public")
_LOCATIONS = ("indexed", "memory", "calldata", "storage")


def _closing_paren(text: str, start: int) -> int:
    depth = 0
    for i in range(start, len(text)):
        if text[i] == "(":
            depth += 1
        elif text[i] == ")":
            depth -= 1
            if depth == 0:
                return i
    raise MalformedInput(f"Unbalanced parentheses in signature: {text!r}")


def _split_params(text: str) -> List[str]:
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for ch in text:
        if ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        current.append(ch)
    tail = "".join(current).strip()
    if tail or parts:
        parts.append(tail)
    return parts


def _basic_type(type_str: str) -> str:
    try:
        parsed = parse(normalize(type_str))
        parsed.validate()
    except (ParseError, ABITypeError) as e:
        raise MalformedInput(f"Invalid ABI type {type_str!r}: {e}") from None
    return parsed.to_type_str()


def _param(text: str) -> Dict[str, Any]:
    if not text:
        raise MalformedInput("Empty parameter in signature")

    entry: Dict[str, Any]
    if text.startswith("("):
        end = _closing_paren(text, 0)
        suffix = _ARRAY_SUFFIX_RE.match(text[end + 1 :]).group(0)
        components = [_param(p) for p in _split_params(text[1:end])]
        entry = {"type": "tuple" + suffix, "components": components}
        rest = text[end + 1 + len(suffix) :].split()
    else:
        type_str, *rest = text.split()
        entry = {"type": _basic_type(type_str)}

    words = [w for w in rest if w not in _LOCATIONS]
    if len(words) > 1:
        raise MalformedInput(f"Invalid parameter in signature: {text!r}")
    entry["name"] = words[0] if words else ""
    return entry


def function_abi_from_signature(signature: str) -> Dict[str, Any]:
    """Build one `{"type": "function", ...}` ABI entry from a human-readable signature."""
    text = (signature or "").strip()
    m = _NAME_RE.match(text)
    if not m:
        raise MalformedInput(f"Invalid function signature: {signature!r}")

    open_idx = m.end() - 1
    close_idx = _closing_paren(text, open_idx)
    inputs = [_param(p) for p in _split_params(text[open_idx + 1 : close_idx])]

    head, returns, tail = text[close_idx + 1 :].partition("returns")
    outputs: List[Dict[str, Any]] = []
    if returns:
        tail = tail.strip()
        if not tail.startswith("(") or _closing_paren(tail, 0) != len(tail) - 1:
            raise MalformedInput(f"Invalid returns clause in signature: {signature!r}")
        outputs = [_param(p) for p in _split_params(tail[1:-1])]

    modifiers = head.split()
    unknown = [w for w in modifiers if w not in _MUTABILITY + _VISIBILITY]
    if unknown:
        raise MalformedInput(f"Unknown modifier(s) in signature: {', '.join(unknown)}")

    return {
        "type": "function",
        "name": m.group(1),
        "inputs": inputs,
        "outputs": outputs,
        "stateMutability": next((w for w in modifiers if w in _MUTABILITY), "nonpayable"),
    }
