import json
import re
from dataclasses import dataclass
from typing import Any, Union

_FENCE_OPEN = re.compile(r"^```[a-zA-Z0-9_-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")


@dataclass(frozen=True)
class Parsed:
    value: Any


@dataclass(frozen=True)
class Malformed:
    reason: str
    raw: str


ParseResult = Union[Parsed, Malformed]


def strip_code_fences(text: str) -> str:
    """
    Retire les balises ```json ... ``` que les modèles ajoutent souvent.
    """
    trimmed = (text or "").strip()
    if trimmed.startswith("```"):
        trimmed = _FENCE_OPEN.sub("", trimmed, count=1)
        trimmed = _FENCE_CLOSE.sub("", trimmed, count=1)
    return trimmed.strip()


def parse_model_json(raw: str) -> ParseResult:
    """
    Parse du JSON renvoyé en texte libre par un modèle, en deux temps :
    1) json.loads strict sur le texte sans balises ;
    2) sinon, la sous-chaîne entre le premier '{' et le dernier '}'.
    Ne lève jamais : renvoie Parsed ou Malformed.
    """
    text = strip_code_fences(raw)
    if not text:
        return Malformed(reason="empty response", raw=raw or "")

    try:
        return Parsed(json.loads(text))
    except json.JSONDecodeError:
        pass

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return Malformed(reason="no JSON object found", raw=raw)

    try:
        return Parsed(json.loads(text[start: end + 1]))
    except json.JSONDecodeError as e:
        return Malformed(reason=f"invalid JSON: {e.msg}", raw=raw)
