"""Chat reply logic for the Telegram bot.

These functions take a user id and message text and return the reply text,
so they can be used (and tested) without a Telegram connection. The aiogram
handlers in ``api/routes/telegram.py`` only move text in and out.
"""

from typing import Sequence

from logging_config import get_logger
from services.measurement_store import DataPoint, get_measurement_store
from services.token_service import get_dashboard_url
from utils.measurement_parser import ParseError, parse_message

logger = get_logger()

FORMAT_EXAMPLES = (
    "Format 1 (with dash):\n"
    "key1 - 75.3\n"
    "key2 - 117,8\n\n"
    "Format 2 (just space):\n"
    "key1 75.3\n"
    "key2 117,8\n\n"
    "Format 3 (one line):\n"
    "\"key1\" - 75.3, \"key2\" - 117.8\n\n"
    "Both dot (75.3) and comma (75,3) decimal separators are supported.\n\n"
    "For historical data, add a date at the beginning:\n"
    "DATE: YYYY-MM-DD (or DATE: DD.MM.YYYY)\n"
    "key1 value1\n"
    "key2 value2\n\n"
)

WELCOME_TEXT = (
    "Welcome to the Data Graph Bot!\n\n"
    "Send me your measurements and I will chart them for you.\n\n"
    + FORMAT_EXAMPLES +
    "Your data is private and can only be viewed by you."
)

HELP_TEXT = (
    "How to use the Data Graph Bot:\n\n"
    + FORMAT_EXAMPLES +
    "Commands:\n"
    "/chart - Get your personal chart URL\n"
    "/clear - Clear all your stored data\n"
    "/delete - List recent data points for deletion\n"
    "/help - Show this help message\n\n"
    "Your data is private and only visible to you."
)

FORMAT_HINT = (
    "Error processing your message. Please ensure it follows one of these formats:\n\n"
    + FORMAT_EXAMPLES
)

PRIVATE_LINK_NOTE = "This link only shows your data and is private to you."

STORAGE_ERROR_TEXT = "Sorry, your data could not be saved right now. Please try again later."

LINK_ERROR_TEXT = "Your chart link is temporarily unavailable. Use /chart to get it later."


def handle_measurement_message(user_id: int, text: str) -> str:
    """Parse a measurement message, store it and build the reply."""
    try:
        records = parse_message(text)
    except ParseError as e:
        logger.info(
            "Rejected malformed measurement message",
            extra={"user_id": user_id, "fragment": e.fragment}
        )
        return FORMAT_HINT + f"Error details: {e}"

    if not records:
        return "No valid data found in your message. Please check the format."

    try:
        get_measurement_store().append(user_id, records)
    except OSError as e:
        logger.error(
            f"Failed to store measurements: {e}",
            exc_info=True,
            extra={"user_id": user_id, "error_type": type(e).__name__}
        )
        return STORAGE_ERROR_TEXT

    keys = ", ".join(f'"{record.key}"' for record in records)
    reply = f"✅ Received data for {keys}.\n\n"

    # A date header applies to every record of the message
    if records[0].timestamp is not None:
        reply += f"Data recorded for date: {records[0].timestamp.date().isoformat()}\n\n"

    try:
        dashboard_url = get_dashboard_url(user_id)
    except OSError as e:
        # The measurements are stored; only the link could not be issued
        logger.error(
            f"Failed to issue dashboard link: {e}",
            exc_info=True,
            extra={"user_id": user_id, "error_type": type(e).__name__}
        )
        return reply + LINK_ERROR_TEXT

    reply += f"View your personal chart: {dashboard_url}\n\n{PRIVATE_LINK_NOTE}"
    return reply


def handle_chart_command(user_id: int) -> str:
    if not get_measurement_store().all_points(user_id):
        return "No data available yet. Send me some data first!"
    return (
        f"You can view your personal chart here: {get_dashboard_url(user_id)}\n\n"
        f"{PRIVATE_LINK_NOTE}"
    )


def handle_clear_command(user_id: int) -> str:
    get_measurement_store().clear(user_id)
    return "All your data has been cleared."


def format_point(point: DataPoint) -> str:
    return f"{point.key}: {point.value:g} ({point.timestamp:%d.%m.%Y %H:%M})"


def build_delete_listing(user_id: int) -> tuple[str, list[DataPoint]]:
    """Numbered list of the user's latest point per metric.

    Returns:
        The listing text and the listed points, in listing order. The point
        list is empty when the user has nothing to delete.
    """
    points = get_measurement_store().latest_points(user_id)
    if not points:
        return "You have no data to delete.", []

    lines = ["Your latest data points:", ""]
    lines += [f"{i}. {format_point(point)}" for i, point in enumerate(points, start=1)]
    lines += [
        "",
        "To delete a data point, reply with the number from the list.",
        'To delete all data, reply with "all".',
        'To cancel, reply with "cancel".',
    ]
    return "\n".join(lines), points


def handle_delete_choice(
    user_id: int,
    text: str,
    points: Sequence[DataPoint]
) -> tuple[str, bool]:
    """Apply the user's answer to the delete listing.

    Returns:
        The reply and whether the delete dialog is finished
    """
    choice = text.strip().lower()

    if choice == "cancel":
        return "Deletion cancelled.", True

    if choice == "all":
        get_measurement_store().clear(user_id)
        return "All your data has been deleted.", True

    try:
        index = int(choice) - 1
    except ValueError:
        index = -1
    if not 0 <= index < len(points):
        return 'Invalid number. Please reply with a number from the list, "all", or "cancel".', False

    point = points[index]
    if get_measurement_store().delete_point(user_id, point.key, point.timestamp, point.value):
        return f"Deleted data point: {point.key}: {point.value:g}", True
    return "Failed to delete data point. It may have already been deleted.", True
