from typing import Dict, Iterable, List, Optional

from models import ChatTurn, RequestContext

HISTORY_TURNS = 5

SYSTEM_TEMPLATE = """You are an AI assistant helping with a {type} interview for a {role} position at {company}.

Interview Context:
- Position Level: {experience}
- Interview Stage: {stage}
- Key Technologies: {technologies}

Your Role:
1. Act as if you're in a real interview conversation. The human is the candidate; respond as in a natural back-and-forth discussion.
2. Treat all inputs (questions or statements) as part of the interview flow
3. If the candidate mentions specific technologies or experiences, engage with follow-up details
4. Keep the tone professional but conversational
5. If appropriate, probe for deeper technical understanding or ask a relevant follow-up question

Previous conversation for context:
{history}

Remember: the candidate might make statements, ask questions, or give examples. Respond while keeping the interview context."""

def render_history(turns: Iterable[ChatTurn], limit: int = HISTORY_TURNS) -> str:
    recent = list(turns)[-limit:] if limit > 0 else []
    return "\n".join(t.render() for t in recent)

def build_system_prompt(ctx: RequestContext, turns: Iterable[ChatTurn], limit: int = HISTORY_TURNS) -> str:
    return SYSTEM_TEMPLATE.format(
        type=ctx.type,
        role=ctx.role,
        company=ctx.company,
        experience=ctx.experience,
        stage=ctx.stage,
        technologies=", ".join(ctx.technologies),
        history=render_history(turns, limit),
    )

def build_messages(text: str, ctx: Optional[RequestContext] = None,
                   turns: Optional[Iterable[ChatTurn]] = None,
                   limit: int = HISTORY_TURNS) -> List[Dict[str, str]]:
    ctx = ctx or RequestContext()
    return [
        {"role": "system", "content": build_system_prompt(ctx, turns or [], limit)},
        {"role": "user", "content": text},
    ]
