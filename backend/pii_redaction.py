"""
TaxPlanner AI - PII Redaction
=============================
Scrubs Indian personal identifiers out of prompt text before it leaves the
process for the AI provider.

Identifiers become numbered tokens ([PAN_1], [PHONE_2]...). The token map
records only which identifier type a token stands for; the original values
are never kept.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

logger = logging.getLogger(__name__)


def _compile(*patterns: str) -> List[re.Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


# =============================================================================
# IDENTIFIER PATTERNS
# Applied in this order; PAN and IFSC are case-sensitive via scoped flags.
# =============================================================================

PII_PATTERNS: Dict[str, List[re.Pattern]] = {
    "PAN": _compile(r'(?-i:\b[A-Z]{5}\d{4}[A-Z]\b)'),
    "AADHAAR": _compile(
        r'\b\d{4}[\s-]\d{4}[\s-]\d{4}\b',
        r'\b\d{12}\b',
    ),
    "BANK_ACCOUNT": _compile(r'\b(?:account|acct|a/c)(?:\s*(?:no|number))?[.:\s#]*\d{9,18}\b'),
    "IFSC": _compile(r'(?-i:\b[A-Z]{4}0[A-Z0-9]{6}\b)'),
    "PHONE": _compile(
        r'\+91[\s-]?[6-9]\d{4}[\s-]?\d{5}\b',
        r'\b[6-9]\d{9}\b',
        r'\b0\d{2,4}[\s-]\d{6,8}\b',
    ),
    "EMAIL": _compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'),
    "DOB": _compile(
        r'\b(?:DOB|Date\s*of\s*Birth|Birth\s*Date)[:\s]*\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b',
        r'\b(?:DOB|Date\s*of\s*Birth|Birth\s*Date)[:\s]*\d{4}-\d{2}-\d{2}\b',
    ),
    "PINCODE": _compile(r'\b(?:PIN|Pincode|PIN\s*code)[:\s]*\d{6}\b'),
}

# Catch-alls run after the typed patterns
CARD_NUMBER = re.compile(r'\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b')
LONG_DIGIT_RUN = re.compile(r'\b\d{13,}\b')

# Final gate before a prompt is sent
LEAKAGE_CHECKS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r'\b[A-Z]{5}\d{4}[A-Z]\b'), "Potential PAN pattern detected"),
    (re.compile(r'\b\d{4}[\s-]?\d{4}[\s-]?\d{4}\b'), "Potential Aadhaar pattern detected"),
    (re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'), "Potential email address detected"),
    (re.compile(r'\b\d{10,}\b'), "Long numeric sequence detected (potential phone/account)"),
]


@dataclass
class RedactionResult:
    original_length: int
    redacted_text: str
    redacted_length: int
    pii_types_found: Set[str] = field(default_factory=set)
    redaction_count: int = 0
    token_map: Dict[str, str] = field(default_factory=dict)  # token -> identifier type
    processing_time_ms: float = 0.0
    warnings: List[str] = field(default_factory=list)

    @property
    def was_modified(self) -> bool:
        return self.redaction_count > 0


@dataclass
class _TokenState:
    """Token counters and map for a single redaction call."""
    counters: Dict[str, int] = field(default_factory=dict)
    token_map: Dict[str, str] = field(default_factory=dict)

    def next_token(self, pii_type: str) -> str:
        self.counters[pii_type] = self.counters.get(pii_type, 0) + 1
        token = f"[{pii_type}_{self.counters[pii_type]}]"
        self.token_map[token] = pii_type
        return token


class PIIRedactor:
    """
    Regex redactor for prompt text.

    Holds no per-call state, so one instance can be shared across threads.
    Token numbering restarts for each call to redact_sensitive_data.
    """

    @staticmethod
    def _replace_identifiers(text: str, state: _TokenState) -> str:
        for pii_type, patterns in PII_PATTERNS.items():
            for pattern in patterns:
                text = pattern.sub(lambda _match: state.next_token(pii_type), text)
        return text

    @staticmethod
    def _scrub_leftover_numbers(text: str) -> str:
        text = CARD_NUMBER.sub('[CARD_NUMBER]', text)
        return LONG_DIGIT_RUN.sub('[ACCOUNT_NUMBER]', text)

    def redact_sensitive_data(self, raw_text: str) -> RedactionResult:
        """Replace every recognised identifier in `raw_text` with a token."""
        started = time.perf_counter()

        if not raw_text or not raw_text.strip():
            return RedactionResult(
                original_length=0,
                redacted_text="",
                redacted_length=0,
                warnings=["Empty input text"],
            )

        state = _TokenState()
        redacted = self._scrub_leftover_numbers(self._replace_identifiers(raw_text, state))
        token_map = state.token_map
        found = set(token_map.values())

        if found:
            logger.info(f"Redacted PII types: {sorted(found)}. Total redactions: {len(token_map)}")

        return RedactionResult(
            original_length=len(raw_text),
            redacted_text=redacted,
            redacted_length=len(redacted),
            pii_types_found=found,
            redaction_count=len(token_map),
            token_map=token_map,
            processing_time_ms=(time.perf_counter() - started) * 1000,
        )

    def validate_no_pii_leakage(self, text: str) -> Tuple[bool, List[str]]:
        """
        Returns:
            Tuple of (is_safe, list of potential issues)
        """
        issues = [message for pattern, message in LEAKAGE_CHECKS if pattern.search(text)]
        return not issues, issues


def redact_sensitive_data(raw_text: str) -> str:
    """Redacted copy of `raw_text`, safe to send to the AI provider."""
    return PIIRedactor().redact_sensitive_data(raw_text).redacted_text
