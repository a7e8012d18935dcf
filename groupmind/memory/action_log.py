"""Append-only audit trails: router decisions and dispatch actions."""

import json


def log_action(db, trace_id, action_type, metadata=None):
    db.execute(
        "INSERT INTO actions (trace_id, action_type, metadata) VALUES (?, ?, ?)",
        (trace_id, action_type, json.dumps(metadata) if metadata else None)
    )
    db.commit()


def log_router_decision(db, decision, message_text, conversation_id=None, addressed=False, trace_id=None):
    db.execute(
        "INSERT INTO router_decisions (trace_id, conversation_id, message_text, action, confidence, reason, "
        "method, addressed, tokens_used, cost) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (trace_id, conversation_id, message_text[:500], decision.action, decision.confidence,
         decision.reason, decision.method, int(addressed), decision.tokens_used, decision.cost)
    )
    db.commit()


def get_router_decisions(db, limit=100):
    cursor = db.execute(
        "SELECT * FROM router_decisions ORDER BY id DESC LIMIT ?",
        (limit,)
    )
    rows = cursor.fetchall()
    rows.reverse()
    return rows


def get_actions(db, trace_id=None):
    if trace_id is None:
        cursor = db.execute("SELECT * FROM actions ORDER BY id")
    else:
        cursor = db.execute("SELECT * FROM actions WHERE trace_id = ? ORDER BY id", (trace_id,))
    return cursor.fetchall()
