"""
console/prompt.py

Human override prompts.

Two literal phrases, compared case-insensitively after trimming:

    "unsecure" : acknowledge that no malware-capable scanner can run and scan
                 anyway. Asked BEFORE any scan; refusing aborts.
    "force"    : proceed despite a policy block. Only offered when the
                 Decision is overridable.

Anything else, an empty line, EOF or Ctrl-C at the prompt counts as "no".
"""

import logging
from typing import Callable

from security_engine.errors import UserAbortError

from .display import Display

logger = logging.getLogger(__name__)

UNSECURE_PHRASE = "unsecure"
FORCE_PHRASE = "force"

Reader = Callable[[str], str]


def _confirm(display: Display, label: str, phrase: str, read: Reader, danger: bool = False) -> bool:
    prompt = display.prompt(label, danger=danger)
    try:
        answer = read(prompt)
    except (EOFError, KeyboardInterrupt):
        display.print()
        return False
    accepted = answer.strip().lower() == phrase
    logger.info("Override prompt %r answered: %s", phrase, "accepted" if accepted else "refused")
    return accepted


def prompt_unsecure(display: Display, read: Reader = input) -> bool:
    display.warning("No SOCKET_API_TOKEN set. Malware detection is disabled.")
    display.info("Get a free API key at https://socket.dev")
    display.print()
    return _confirm(
        display,
        f"Type '{UNSECURE_PHRASE}' to continue without malware scanning:",
        UNSECURE_PHRASE,
        read,
    )


def prompt_force(display: Display, read: Reader = input) -> bool:
    display.print()
    return _confirm(
        display,
        f"Type '{FORCE_PHRASE}' to override security blocks (DANGEROUS):",
        FORCE_PHRASE,
        read,
        danger=True,
    )


def acknowledge_coverage_gap(config, display: Display, read: Reader = input):
    """
    Ask for the "unsecure" acknowledgment when the malware scanner cannot run.

    Returns the config to scan with (Socket disabled once acknowledged).

    Raises:
        UserAbortError: the user did not type the phrase.
    """
    if not config.coverage_gap():
        return config
    if not prompt_unsecure(display, read):
        raise UserAbortError()
    return config.without_socket()
