"""
One-time feedback notice.

Nothing here runs on import; applications call show_feedback_notice()
themselves if they want the message.
"""

from core.logger import get_logger

logger = get_logger(__name__)

FEEDBACK_MESSAGE = (
    "Thanks for using querykit! Bug reports and feature requests are welcome "
    "on the project issue tracker."
)

_shown = False


def show_feedback_notice() -> bool:
    """Log the feedback notice once per process.

    Returns:
        True if the notice was logged by this call, False if it had
        already been shown
    """
    global _shown
    if _shown:
        return False
    _shown = True
    logger.info(FEEDBACK_MESSAGE)
    return True


def reset_feedback_notice() -> None:
    """Allow the notice to be shown again (used by tests)."""
    global _shown
    _shown = False
