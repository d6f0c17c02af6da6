"""
Command policy classification.

Every command the agent asks for is classified before anything is spawned:
refused outright, simulated (demo mode), or executed on the host.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from gofer.config import ExecutionConfig


class OperatingMode(str, Enum):
    DISABLED = "disabled"
    DEMO = "demo"
    NORMAL = "normal"

    @classmethod
    def from_config(cls, config: ExecutionConfig) -> "OperatingMode":
        if not config.enabled:
            return cls.DISABLED
        if config.demo_mode:
            return cls.DEMO
        return cls.NORMAL


@dataclass(frozen=True)
class Execute:
    """Run the command on the host."""


@dataclass(frozen=True)
class Simulate:
    """Return a synthesized response without touching the host."""

    stdout: str
    stderr: str = ""


@dataclass(frozen=True)
class Refuse:
    """Do not run the command."""

    reason: str


PolicyDecision = Execute | Simulate | Refuse


@dataclass(frozen=True)
class PolicyExplanation:
    decision: PolicyDecision
    rule: str
    pattern: str | None = None


# Checked in every mode, before anything else.
FORBIDDEN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\brm\s+-rf?\s+/\s*--no-preserve-root\b", re.IGNORECASE),
    re.compile(r"\bdd\s+if=.*\s+of=/dev/(sda|nvme|hda)[0-9]*", re.IGNORECASE),
    re.compile(r"\bmkfs(\.\w+)?\s+/dev/[a-z0-9]+", re.IGNORECASE),
    re.compile(r"\bpasswd\b", re.IGNORECASE),
)

DEMO_FORBIDDEN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"\b(rm|rmdir|mv|cp|mkdir|touch|chmod|chown|sudo|su|passwd|useradd|userdel|groupadd|groupdel)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(apt|yum|dnf|pacman|pip|npm|yarn|cargo|go\s+install)\b", re.IGNORECASE),
    re.compile(r"\b(systemctl|service|mount|umount|fdisk|parted|mkfs|dd)\b", re.IGNORECASE),
    re.compile(r"\b(git\s+commit|git\s+push|git\s+clone|git\s+pull)\b", re.IGNORECASE),
    re.compile(r">"),
    re.compile(r"\|"),
    re.compile(r"\$\{.*\}"),
    re.compile(r"\$\("),
    re.compile(r"\$\w"),
    re.compile(r"<"),
    re.compile(r"`"),
    re.compile(r"export\s+", re.IGNORECASE),
    re.compile(r"source\s+", re.IGNORECASE),
    re.compile(r"\."),
)

DEMO_SAFE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^ls\b"),
    re.compile(r"^pwd$"),
    re.compile(r"^whoami$"),
    re.compile(r"^date$"),
    re.compile(r"^echo\s+(?!.*\$)"),
    re.compile(r"^cat\s+/etc/os-release$"),
    re.compile(r"^uname\s+-a$"),
    re.compile(r"^uptime$"),
    re.compile(r"^df\s+-h$"),
    re.compile(r"^free\s+-h$"),
    re.compile(r"^ps\s+aux$"),
    re.compile(r"^which\s+\w+$"),
    re.compile(r"^find\s+.*-type\s+f.*-name.*$"),
    re.compile(r"^grep\s+.*$"),
    re.compile(r"^head\s+.*$"),
    re.compile(r"^tail\s+.*$"),
    re.compile(r"^wc\s+.*$"),
    re.compile(r"^sort\s+.*$"),
    re.compile(r"^uniq\s+.*$"),
)

DEMO_LS_OUTPUT = "demo_file1.txt\ndemo_file2.txt\ndemo_folder/\nREADME.md\npackage.json"

DEMO_CANNED_OUTPUT: dict[str, str] = {
    "pwd": "/home/demo-user/demo-workspace",
    "whoami": "demo-user",
    "uname -a": "Linux demo-machine 5.15.0-demo #1 SMP PREEMPT Demo x86_64 GNU/Linux",
    "uptime": "14:32:01 up 2 days, 3:21, 1 user, load average: 0.15, 0.25, 0.30",
    "df -h": (
        "Filesystem      Size  Used Avail Use% Mounted on\n"
        "/dev/sda1        20G  8.5G   11G  45% /\n"
        "tmpfs           2.0G     0  2.0G   0% /tmp"
    ),
    "free -h": (
        "               total        used        free      shared  buff/cache   available\n"
        "Mem:           7.8Gi       2.1Gi       4.2Gi       0.3Gi       1.5Gi       5.1Gi\n"
        "Swap:          2.0Gi          0B       2.0Gi"
    ),
    "ps aux": (
        "USER         PID %CPU %MEM    VSZ   RSS TTY      STAT START   TIME COMMAND\n"
        "demo-user   1234  0.1  0.5  12345  6789 pts/0    S    14:30   0:00 bash\n"
        "demo-user   5678  0.0  0.2   8901  2345 pts/0    R    14:32   0:00 ps aux"
    ),
}

DEMO_OS_RELEASE = (
    'NAME="Demo Linux"\n'
    'VERSION="1.0 (Demo Edition)"\n'
    "ID=demo\n"
    "ID_LIKE=debian\n"
    'PRETTY_NAME="Demo Linux 1.0"\n'
    'VERSION_ID="1.0"\n'
    'HOME_URL="https://demo.example.com/"\n'
    'SUPPORT_URL="https://demo.example.com/support"'
)

DEMO_FIND_OUTPUT = "./demo_file1.txt\n./demo_folder/demo_file2.txt\n./README.md"

FORBIDDEN_REASON = "Refusing to run forbidden command: {command}"
DISABLED_REASON = "Command execution disabled: set ENABLE_COMMAND_EXECUTION=true to allow it."
DEMO_BLOCKED_REASON = (
    "Demo mode blocks write/escape operations: write operations and potentially "
    "dangerous commands are disabled for security."
)
DEMO_UNLISTED_REASON = (
    "Command not on demo allow-list: only safe, read-only commands are allowed in demo mode."
)


def _first_match(patterns: tuple[re.Pattern[str], ...], command: str) -> re.Pattern[str] | None:
    for pattern in patterns:
        if pattern.search(command):
            return pattern
    return None


def demo_response(command: str) -> Simulate:
    """Build the synthesized output for a demo allow-listed command."""
    stripped = command.strip()
    normalized = stripped.lower()

    if normalized == "ls" or normalized.startswith("ls "):
        return Simulate(DEMO_LS_OUTPUT)
    if normalized == "date":
        return Simulate(datetime.now().astimezone().strftime("%a %b %d %H:%M:%S %Z %Y"))
    if normalized in DEMO_CANNED_OUTPUT:
        return Simulate(DEMO_CANNED_OUTPUT[normalized])
    if normalized.startswith("cat /etc/os-release"):
        return Simulate(DEMO_OS_RELEASE)
    if normalized.startswith("echo "):
        return Simulate(stripped[5:].strip())
    if normalized.startswith("find "):
        return Simulate(DEMO_FIND_OUTPUT)
    return Simulate(f'[DEMO MODE] Command "{stripped}" executed successfully (simulated response)')


def explain(command: str, mode: OperatingMode) -> PolicyExplanation:
    """Classify ``command`` and report which rule decided it.

    Deny-lists are evaluated before the allow-list and the first matching
    pattern wins.
    """
    pattern = _first_match(FORBIDDEN_PATTERNS, command)
    if pattern is not None:
        return PolicyExplanation(
            Refuse(FORBIDDEN_REASON.format(command=command)), "forbidden", pattern.pattern
        )

    if mode is OperatingMode.DISABLED:
        return PolicyExplanation(Refuse(DISABLED_REASON), "disabled")

    if mode is OperatingMode.DEMO:
        pattern = _first_match(DEMO_FORBIDDEN_PATTERNS, command)
        if pattern is not None:
            return PolicyExplanation(Refuse(DEMO_BLOCKED_REASON), "demo-blocked", pattern.pattern)

        pattern = _first_match(DEMO_SAFE_PATTERNS, command.strip())
        if pattern is not None:
            return PolicyExplanation(demo_response(command), "demo-allowed", pattern.pattern)

        return PolicyExplanation(Refuse(DEMO_UNLISTED_REASON), "demo-unlisted")

    return PolicyExplanation(Execute(), "normal")


def classify(command: str, mode: OperatingMode) -> PolicyDecision:
    """Map a raw command and the operating mode to a policy decision."""
    return explain(command, mode).decision
