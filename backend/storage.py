from typing import Dict, Optional

from session import ConnectionSession

# sid -> live socket session; entries only exist between connect and disconnect
SESSIONS: Dict[str, ConnectionSession] = {}

def add_session(session: ConnectionSession) -> ConnectionSession:
    SESSIONS[session.sid] = session
    return session

def get_session(sid: str) -> Optional[ConnectionSession]:
    return SESSIONS.get(sid)

def drop_session(sid: str) -> Optional[ConnectionSession]:
    return SESSIONS.pop(sid, None)
