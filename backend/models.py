# models.py
from __future__ import annotations
import json
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterable, List, Optional, Union


@dataclass(frozen=True)
class ChatTurn:
    speaker: str
    text: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatTurn":
        return cls(speaker=str(data.get("speaker") or ""), text=str(data.get("text") or ""))

    def render(self) -> str:
        return f"{self.speaker}: {self.text}"


def coerce_turns(turns: Optional[Iterable[Any]]) -> List[ChatTurn]:
    """Accept ChatTurn objects or client dicts; anything else is dropped."""
    if not isinstance(turns, (list, tuple)):
        return []
    out: List[ChatTurn] = []
    for t in turns:
        if isinstance(t, ChatTurn):
            out.append(t)
        elif isinstance(t, dict):
            out.append(ChatTurn.from_dict(t))
    return out


@dataclass(frozen=True)
class RequestContext:
    type: str = "technical"
    role: str = "Software Engineer"
    experience: str = "mid-level"
    technologies: List[str] = field(default_factory=list)
    company: str = "the company"
    stage: str = "technical interview"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RequestContext":
        data = data if isinstance(data, dict) else {}
        defaults = cls()

        def pick(name: str) -> str:
            val = data.get(name)
            return str(val).strip() if val else getattr(defaults, name)

        techs = data.get("technologies") or []
        if isinstance(techs, str):
            techs = [t.strip() for t in techs.split(",") if t.strip()]
        elif not isinstance(techs, (list, tuple)):
            techs = []
        return cls(
            type=pick("type"),
            role=pick("role"),
            experience=pick("experience"),
            technologies=[str(t) for t in techs],
            company=pick("company"),
            stage=pick("stage"),
        )


def coerce_context(context: Union["RequestContext", Dict[str, Any], None]) -> RequestContext:
    if isinstance(context, RequestContext):
        return context
    return RequestContext.from_dict(context)


@dataclass(frozen=True)
class StreamChunk:
    content: str
    is_final: bool = False
    from_cache: bool = False

    def __post_init__(self):
        if not self.content and not self.is_final:
            raise ValueError("only the final chunk may be empty")


@dataclass(frozen=True)
class RelayError:
    """Error-shaped sink event; terminal for the relay that produced it."""
    message: str
    details: str = ""


@dataclass(frozen=True)
class CacheEntry:
    question: str
    answer: str
    timestamp: str

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)

    @classmethod
    def from_json(cls, raw: str) -> "CacheEntry":
        data = json.loads(raw)
        if not isinstance(data, dict) or not isinstance(data.get("answer"), str):
            raise ValueError("cache record has no answer")
        return cls(
            question=str(data.get("question") or ""),
            answer=data["answer"],
            timestamp=str(data.get("timestamp") or ""),
        )
