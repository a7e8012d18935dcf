"""
Two-tier router: decides whether a flushed batch deserves the assistant's attention.

Tier 1 is an ordered list of pure rules over the text. Each rule returns a
decision or None (inconclusive); the first decision wins. Tier 2 asks the
oracle and fails open to PASS when the oracle is down or talks nonsense.
"""

import re
import sqlite3
from dataclasses import dataclass
from typing import Optional

from groupmind.config import ORACLE_PRICE_INPUT_PER_1K, ORACLE_PRICE_OUTPUT_PER_1K
from groupmind.core.oracle import OracleError
from groupmind.core.parsing import decode
from groupmind.core.prompts import ROUTER_PROMPT
from groupmind.core.schemas import RouterVerdict
from groupmind.logging_config import get_logger
from groupmind.memory.action_log import log_router_decision
from groupmind.memory.models import RouterDecision

logger = get_logger(__name__)

ACKNOWLEDGEMENTS = ["ok", "oke", "okay", "ya", "yes", "no", "tidak", "siap", "noted", "thanks", "makasih",
                    "terima kasih"]
LAUGHTER = re.compile(r"(?:ha){2,}|(?:he){2,}|(?:hi){2,}|(?:wk){2,}|\b(?:lol|lmao|anjir|anjay)\b")
QUESTION_WORDS = ["gimana", "bagaimana", "kapan", "kenapa", "apa", "siapa", "mana", "berapa",
                  "how", "why", "what", "when", "where", "who"]
PROBLEM_WORDS = ["error", "masalah", "problem", "issue", "gagal", "failed", "broken", "delay", "terlambat",
                 "belum", "urgent", "waduh", "gawat", "stuck", "macet"]
REMINDER_WORDS = ["remind", "reminder", "ingatkan", "ingetin", "jangan lupa", "schedule", "jadwal"]
GREETINGS = ["good morning", "good afternoon", "good evening", "selamat pagi", "selamat siang", "selamat sore",
             "pagi", "siang", "sore", "halo", "hi", "hello"]
PRAISE = ["mantap", "bagus", "keren", "nice", "good", "oke sip", "siap", "roger", "copy"]


def _keyword_pattern(words):
    alternatives = "|".join(re.escape(w).replace(r"\ ", r"\s+") for w in sorted(words, key=len, reverse=True))
    return re.compile(rf"\b(?:{alternatives})\b")


QUESTION_PATTERN = _keyword_pattern(QUESTION_WORDS)
PROBLEM_PATTERN = _keyword_pattern(PROBLEM_WORDS)
REMINDER_PATTERN = _keyword_pattern(REMINDER_WORDS)


@dataclass(frozen=True)
class RouteContext:
    conversation_id: Optional[str] = None
    addressed: bool = False
    sender: Optional[str] = None
    trace_id: Optional[str] = None


def _normalize(text):
    return " ".join(text.lower().split())


def _bare(text):
    """Lowercased text without trailing punctuation or a trailing 'bro'."""
    text = _normalize(text).rstrip("!.")
    if text.endswith(" bro") or (text.endswith("bro") and text[:-3] in PRAISE):
        text = text[:-3].rstrip()
    return text


def _word_count(text):
    return len(text.split())


def _heuristic(action, confidence, reason):
    return RouterDecision(action=action, confidence=confidence, reason=reason, method="heuristic")


def rule_addressed(text, context):
    if context.addressed:
        return _heuristic("pass", 1.0, "Assistant explicitly addressed")


def rule_acknowledgement(text, context):
    if _word_count(text) <= 2 and "?" not in text and _bare(text) in ACKNOWLEDGEMENTS:
        return _heuristic("ignore", 0.95, "Simple acknowledgement (<= 2 words)")


def rule_laughter(text, context):
    if _word_count(text) <= 3 and LAUGHTER.search(_normalize(text)):
        return _heuristic("ignore", 0.9, "Social laughter/reaction")


def rule_question(text, context):
    if "?" in text or QUESTION_PATTERN.search(_normalize(text)):
        return _heuristic("pass", 0.9, "Contains question indicator")


def rule_problem(text, context):
    if PROBLEM_PATTERN.search(_normalize(text)):
        return _heuristic("pass", 0.85, "Problem/concern keyword detected")


def rule_reminder(text, context):
    if REMINDER_PATTERN.search(_normalize(text)):
        return _heuristic("pass", 0.8, "Reminder/scheduling keyword detected")


def rule_greeting(text, context):
    if _word_count(text) <= 3 and _bare(text) in GREETINGS:
        return _heuristic("ignore", 0.85, "Simple greeting")


def rule_praise(text, context):
    if _word_count(text) <= 3 and _bare(text) in PRAISE:
        return _heuristic("ignore", 0.8, "Social praise/encouragement")


SOCIAL_RULES = [rule_acknowledgement, rule_laughter, rule_greeting, rule_praise]


def rule_all_lines_social(text, context):
    """A batch of several messages that are each ignorable on their own."""
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        return None
    for line in lines:
        if not any(rule(line, context) for rule in SOCIAL_RULES):
            return None
    return _heuristic("ignore", 0.8, f"All {len(lines)} messages are social")


# Evaluated in order; the first rule returning a decision wins.
HEURISTIC_RULES = [
    rule_addressed,
    rule_acknowledgement,
    rule_laughter,
    rule_question,
    rule_problem,
    rule_reminder,
    rule_greeting,
    rule_praise,
    rule_all_lines_social,
]


def check_heuristics(text, context=None, rules=HEURISTIC_RULES):
    """Tier 1. Pure: same text and context, same answer. None when inconclusive."""
    context = context or RouteContext()
    for rule in rules:
        decision = rule(text, context)
        if decision is not None:
            return decision
    return None


@dataclass
class RouterStats:
    total_decisions: int = 0
    heuristic_decisions: int = 0
    oracle_decisions: int = 0
    oracle_failures: int = 0
    total_cost: float = 0.0

    @property
    def heuristic_percentage(self):
        if not self.total_decisions:
            return 0.0
        return round(self.heuristic_decisions / self.total_decisions * 100, 1)


class Router:
    def __init__(self, oracle, db=None, rules=HEURISTIC_RULES,
                 price_input_per_1k=ORACLE_PRICE_INPUT_PER_1K, price_output_per_1k=ORACLE_PRICE_OUTPUT_PER_1K):
        self.oracle = oracle
        self.db = db
        self.rules = rules
        self.price_input_per_1k = price_input_per_1k
        self.price_output_per_1k = price_output_per_1k
        self.stats = RouterStats()

    async def decide(self, text, context=None):
        context = context or RouteContext()

        decision = check_heuristics(text, context, self.rules)
        if decision is None:
            decision = await self._ask_oracle(text)
            self.stats.oracle_decisions += 1
            self.stats.total_cost += decision.cost
        else:
            self.stats.heuristic_decisions += 1
        self.stats.total_decisions += 1

        self._log_decision(decision, text, context)
        logger.info(f"[{context.trace_id}] router {decision.method}: {decision.action.upper()} "
                    f"({decision.reason}) cost=${decision.cost:.6f}")
        return decision

    async def _ask_oracle(self, text):
        try:
            reply = await self.oracle.complete(ROUTER_PROMPT, f'Message: "{text}"', json_mode=True,
                                               temperature=0.2, max_tokens=100)
        except OracleError as e:
            self.stats.oracle_failures += 1
            logger.error(f"Router oracle call failed, defaulting to PASS: {e}")
            return RouterDecision(action="pass", confidence=0.5, method="oracle",
                                  reason=f"Router oracle error, defaulting to PASS: {e}")

        cost = reply.cost(self.price_input_per_1k, self.price_output_per_1k)
        result = decode(reply.text, RouterVerdict)
        if not result.ok:
            self.stats.oracle_failures += 1
            logger.error(f"Router could not parse oracle output ({result.reason}): {reply.text[:200]!r}")
            return RouterDecision(action="pass", confidence=0.5, method="oracle", cost=cost,
                                  tokens_used=reply.total_tokens,
                                  reason=f"Router parsing error, defaulting to PASS: {result.reason}")

        verdict = result.value
        return RouterDecision(action=verdict.action, confidence=verdict.confidence,
                              reason=verdict.reason or "Oracle classification", method="oracle",
                              cost=cost, tokens_used=reply.total_tokens)

    def _log_decision(self, decision, text, context):
        if self.db is None:
            return
        try:
            log_router_decision(self.db, decision, text, conversation_id=context.conversation_id,
                                addressed=context.addressed, trace_id=context.trace_id)
        except sqlite3.Error as e:
            logger.error(f"Error logging router decision: {e}")

    def reset_stats(self):
        self.stats = RouterStats()
