"""
Input handling for the local operator channel.
"""

import asyncio
from pathlib import Path

from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory
from prompt_toolkit.styles import Style


PROMPT_STYLE = Style.from_dict({
    "prompt": "cyan bold",
    "": "",
})


def _get_history_path() -> Path:
    """Get path to history file."""
    history_dir = Path.home() / ".gofer"
    history_dir.mkdir(exist_ok=True)
    return history_dir / "history"


_session: PromptSession | None = None


def _get_session() -> PromptSession:
    """Get or create prompt session."""
    global _session
    if _session is None:
        _session = PromptSession(
            history=FileHistory(str(_get_history_path())),
            style=PROMPT_STYLE,
            multiline=False,
        )
    return _session


async def get_user_input(prompt: str = "Your response: ", default: str = "") -> str:
    """Get user input asynchronously.

    Args:
        prompt: Prompt string to display.
        default: Default text to pre-fill in the prompt.

    Returns:
        User's input string.
    """
    session = _get_session()

    # prompt_toolkit blocks, keep it off the event loop
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None,
        lambda: session.prompt([("class:prompt", prompt)], default=default),
    )
