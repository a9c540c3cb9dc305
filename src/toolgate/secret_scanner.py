"""
Secret Scanner for detecting and redacting sensitive information in
command output before it reaches the model.

Detects:
- API keys (OpenAI, Anthropic, Google, Stripe, generic assignments)
- Tokens (JWTs, bearer tokens, GitHub and GitLab tokens)
- AWS credentials
- Passwords and secrets in assignments
- PEM private keys
"""

import re
from dataclasses import dataclass, field


@dataclass
class SecretMatch:
    """A detected secret in text."""

    pattern_name: str
    matched_text: str
    start: int
    end: int
    priority: int


@dataclass
class ScanResult:
    has_secrets: bool
    redacted_text: str
    matches: list[SecretMatch] = field(default_factory=list)


class SecretScanner:
    """
    Scans text for secrets and provides redaction.

    Patterns are listed from highest to lowest priority. When two matches
    overlap, the higher-priority one is kept, so a PEM block is redacted as
    one private key instead of as a handful of generic assignments.
    """

    DEFAULT_PATTERNS: dict[str, str] = {
        "private_key": r"-----BEGIN\s+(?:RSA\s+|EC\s+|OPENSSH\s+|DSA\s+)?PRIVATE\s+KEY-----[\s\S]*?-----END\s+(?:RSA\s+|EC\s+|OPENSSH\s+|DSA\s+)?PRIVATE\s+KEY-----",
        "anthropic_key": r"sk-ant-[a-zA-Z0-9\-_]{20,}",
        "openai_key": r"sk-(?:proj-)?[a-zA-Z0-9]{20,}",
        "stripe_key": r"(?:sk|rk|pk)_(?:live|test)_[a-zA-Z0-9]{16,}",
        "github_pat": r"github_pat_[a-zA-Z0-9]{22}_[a-zA-Z0-9]{59}",
        "github_token": r"gh[pousr]_[a-zA-Z0-9]{36,}",
        "gitlab_token": r"glpat-[a-zA-Z0-9\-_]{20,}",
        "google_api_key": r"AIza[0-9A-Za-z\-_]{35}",
        "aws_access_key": r"AKIA[0-9A-Z]{16}",
        "aws_secret_key": r"aws[_-]?secret[_-]?(?:access[_-]?)?key\s*[=:]\s*['\"]?[a-zA-Z0-9/+=]{40}['\"]?",
        "jwt": r"eyJ[a-zA-Z0-9\-_]{8,}\.eyJ[a-zA-Z0-9\-_]{8,}\.[a-zA-Z0-9\-_]{8,}",
        "bearer_token": r"Bearer\s+[a-zA-Z0-9\-_\.=]{20,}",
        "api_key_assignment": r"(?:api[_-]?key|apikey)\s*[=:]\s*['\"]?[a-zA-Z0-9\-_]{16,}['\"]?",
        "password_assignment": r"(?:password|passwd|pwd)\s*[=:]\s*['\"]?[^\s'\"]{4,}['\"]?",
        "secret_assignment": r"(?:secret|token)\s*[=:]\s*['\"]?[a-zA-Z0-9\-_]{8,}['\"]?",
    }

    def __init__(
        self,
        patterns: dict[str, str] | None = None,
        enabled: bool = True,
    ):
        self.patterns = patterns or self.DEFAULT_PATTERNS
        self.enabled = enabled
        self._compiled: list[tuple[str, re.Pattern[str], int]] = []
        count = len(self.patterns)
        for i, (name, pattern) in enumerate(self.patterns.items()):
            self._compiled.append((name, re.compile(pattern, re.IGNORECASE), count - i))

    @staticmethod
    def placeholder(pattern_name: str) -> str:
        return f"[[REDACTED:{pattern_name}]]"

    def scan(self, text: str) -> list[SecretMatch]:
        """All non-overlapping secrets in text, sorted by position."""
        if not self.enabled or not text:
            return []

        matches: list[SecretMatch] = []
        for name, pattern, priority in self._compiled:
            for match in pattern.finditer(text):
                start, end = match.start(), match.end()
                if start == end:
                    continue
                if any(start < m.end and end > m.start for m in matches):
                    continue
                matches.append(SecretMatch(
                    pattern_name=name,
                    matched_text=match.group(0),
                    start=start,
                    end=end,
                    priority=priority,
                ))

        matches.sort(key=lambda m: m.start)
        return matches

    def detect(self, text: str) -> ScanResult:
        """Scan and redact in one pass."""
        matches = self.scan(text)
        if not matches:
            return ScanResult(has_secrets=False, redacted_text=text)
        result = text
        for match in reversed(matches):
            result = result[:match.start] + self.placeholder(match.pattern_name) + result[match.end:]
        return ScanResult(has_secrets=True, redacted_text=result, matches=matches)

    def redact(self, text: str) -> str:
        return self.detect(text).redacted_text
