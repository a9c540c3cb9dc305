"""
Command danger classification.

Shell commands are matched against two ordered pattern lists before they
run. The result only decides whether the user gets a warning: nothing here
blocks execution, and plenty of destructive commands will classify as low.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class DangerLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Patterns run against the trimmed, lower-cased command.
HIGH_RISK_PATTERNS: tuple[re.Pattern[str], ...] = tuple(re.compile(p) for p in (
    r"rm\s+-rf",                          # recursive force delete
    r"rm\s+-r\s+",
    r"dd\s+if=",                          # disk operations
    r"sudo\s+(rm|del|format|mkfs|fdisk)",
    r"chmod\s+.*777",
    r"chown\s+-r",
    r"format\s+",
    r"fdisk\s+",
    r"parted\s+",
    r"curl\s+.*\|?\s*sh\s*$",             # piping a download into a shell
    r"wget\s+.*\|?\s*sh\s*$",
    r"echo\s+.*\|?\s*sh\s*$",
    r"\$\(curl\s+",
    r"\$\(wget\s+",
    r"uninstall",
    r"purge\s+",
    r"npm\s+uninstall\s+-g",
    r"pip\s+uninstall",
    r"git\s+reset\s+--hard",
    r"git\s+clean\s+-fd",
    r"git\s+push\s+--force",
    r"git\s+push\s+-f",
))

MEDIUM_RISK_PATTERNS: tuple[re.Pattern[str], ...] = tuple(re.compile(p) for p in (
    r"sudo\s+",
    r"chmod\s+",
    r"chown\s+",
    r"rm\s+",
    r"del\s+",                            # windows delete
    r"rmdir\s+",
    r"unlink\s+",
    r"mv\s+.*\s+\.\./",                   # moving out of the workspace
    r"cp\s+.*\s+\.\./",
    r"git\s+push",
    r"git\s+reset",
    r"npm\s+install\s+-g",
    r"pip\s+install\s+--user",
    r"docker\s+rm",
    r"docker\s+rmi",
    r"kubectl\s+delete",
    r"systemctl\s+",
    r"service\s+",
    r"apt\s+remove",
    r"yum\s+remove",
    r"pacman\s+-r",
))


def classify(command: str) -> DangerLevel:
    """First high-risk match wins, then first medium-risk match, else low."""
    normalized = command.strip().lower()
    for pattern in HIGH_RISK_PATTERNS:
        if pattern.search(normalized):
            return DangerLevel.HIGH
    for pattern in MEDIUM_RISK_PATTERNS:
        if pattern.search(normalized):
            return DangerLevel.MEDIUM
    return DangerLevel.LOW


@dataclass(frozen=True)
class Notification:
    level: str  # "warn" or "info"
    message: str


def danger_notification(command: str, level: DangerLevel) -> Notification | None:
    """The warning to show before running command, if any."""
    if level == DangerLevel.HIGH:
        return Notification(
            level="warn",
            message=(
                f"High-risk command detected: {command}\n"
                "This command may cause data loss or system changes. Please review carefully."
            ),
        )
    if level == DangerLevel.MEDIUM:
        return Notification(
            level="info",
            message=f"Potentially risky command: {command}\nReview before execution.",
        )
    return None


class NotificationSink(ABC):
    """Where danger warnings go."""

    @abstractmethod
    def notify(self, notification: Notification) -> None:
        pass


class LoggingNotificationSink(NotificationSink):
    """Default sink: warnings become log records."""

    def notify(self, notification: Notification) -> None:
        if notification.level == "warn":
            logger.warning(notification.message)
        else:
            logger.info(notification.message)


class CollectingNotificationSink(NotificationSink):
    """Keeps notifications in memory, for hosts that render them later."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)
