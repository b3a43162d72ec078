# template.py
# Static environment placeholders ({{time}}, {{os}}, ...) for prompts.
#
# Values are a snapshot, sampled by the caller and passed in explicitly, so
# tests can substitute deterministic values and every step sees the instant
# it runs rather than pipeline start.

import getpass
import os
import platform
import re
import sys
from dataclasses import dataclass
from datetime import datetime

TIME_FORMAT = "%H:%M:%S"
DATE_FORMAT = "%Y-%m-%d"
DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_SHELL_UNIX = "/bin/sh"
DEFAULT_SHELL_WINDOWS = "cmd.exe"

OS_WINDOWS = "windows"
OS_DARWIN = "darwin"
OS_LINUX = "linux"

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
}

_PLACEHOLDER_RE = re.compile(r"\{\{(?:time|date|datetime|directory|os|arch|shell|user)\}\}")


@dataclass(frozen=True)
class TemplateValues:
    time: str
    date: str
    datetime: str
    directory: str
    os: str
    arch: str
    shell: str
    user: str

    def to_map(self) -> dict[str, str]:
        return {
            "{{time}}": self.time,
            "{{date}}": self.date,
            "{{datetime}}": self.datetime,
            "{{directory}}": self.directory,
            "{{os}}": self.os,
            "{{arch}}": self.arch,
            "{{shell}}": self.shell,
            "{{user}}": self.user,
        }


def current_os() -> str:
    if sys.platform.startswith("win"):
        return OS_WINDOWS
    if sys.platform == "darwin":
        return OS_DARWIN
    if sys.platform.startswith("linux"):
        return OS_LINUX
    return sys.platform


def current_arch() -> str:
    machine = platform.machine().lower()
    return _ARCH_ALIASES.get(machine, machine)


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


def get_template_values(now: datetime | None = None) -> TemplateValues:
    """Sample the runtime environment right now."""
    now = now or datetime.now()
    os_name = current_os()

    shell = os.getenv("SHELL", "")
    if not shell:
        shell = DEFAULT_SHELL_WINDOWS if os_name == OS_WINDOWS else DEFAULT_SHELL_UNIX

    return TemplateValues(
        time=now.strftime(TIME_FORMAT),
        date=now.strftime(DATE_FORMAT),
        datetime=now.strftime(DATETIME_FORMAT),
        directory=os.getcwd(),
        os=os_name,
        arch=current_arch(),
        shell=shell,
        user=_current_user(),
    )


def apply_template(text: str, values: TemplateValues) -> str:
    """Substitute every static placeholder in text in a single scan."""
    mapping = values.to_map()
    return _PLACEHOLDER_RE.sub(lambda m: mapping[m.group(0)], text)

