"""
Generator Output Parsing

Best-effort lexical scans that recover structure from free text.
Each scan has a documented fallback and never raises.
"""

import re
from typing import List, Optional

STEP_MARKER = re.compile(r"^\d+\.|step \d+", re.IGNORECASE)

ANSWER_PATTERNS = [
    re.compile(r"(?:answer|conclusion|therefore|finally|result):\s*(.+?)(?:\n|$)", re.IGNORECASE),
    re.compile(r"(?:the answer is|the result is|we conclude that)\s*(.+?)(?:\n|$)", re.IGNORECASE),
]

MIN_SENTENCE_LENGTH = 10
MIN_PARAGRAPH_LENGTH = 50
MAX_FALLBACK_SUBTASKS = 3

ACTION_TYPES = ("SEARCH", "CALCULATE", "ANALYZE", "ANSWER")


def split_reasoning_steps(text: str) -> List[str]:
    """
    Lines that look like numbered reasoning steps: "1." at the very start of
    the line (indented numbering does not count) or "Step 2" anywhere.

    Returns an empty list when no marker is found; callers treat the whole
    reply as a single step in that case.
    """
    steps = []
    for line in text.split("\n"):
        stripped = line.strip()
        if stripped and STEP_MARKER.search(line):
            steps.append(stripped)
    return steps


def extract_final_answer(text: str) -> str:
    """
    Pull the final answer out of a reasoning reply.

    Order: explicit lead-in phrase, then the last sentence longer than
    10 characters, then the whole reply.
    """
    for pattern in ANSWER_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()

    sentences = [s.strip() for s in text.split(".")]
    for sentence in reversed(sentences):
        if len(sentence) > MIN_SENTENCE_LENGTH:
            return sentence + "."

    return text.strip()


def classify_action(action_text: str) -> Optional[str]:
    """First known action keyword contained in the text (case-insensitive)."""
    upper = action_text.upper()
    for action in ACTION_TYPES:
        if action in upper:
            return action
    return None


def split_candidates(text: str, limit: int) -> List[str]:
    """Non-empty lines of a candidate listing, first `limit` kept."""
    lines = [line.strip() for line in text.split("\n")]
    return [line for line in lines if line][:limit]


def parse_subtasks(text: str) -> List[str]:
    """
    Subtasks from a leader's decomposition.

    Lines containing a "SUBTASK" marker contribute the text after their first
    colon. Without any marker, paragraphs longer than 50 characters are used,
    at most three of them.
    """
    subtasks = []
    for line in text.split("\n"):
        if "SUBTASK" not in line.upper():
            continue
        _, sep, rest = line.partition(":")
        if sep and rest.strip():
            subtasks.append(rest.strip())
    if subtasks:
        return subtasks

    paragraphs = [p.strip() for p in text.split("\n\n")]
    return [p for p in paragraphs if len(p) > MIN_PARAGRAPH_LENGTH][:MAX_FALLBACK_SUBTASKS]
