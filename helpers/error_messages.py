"""
Centralized message formatting for user-facing Discord replies.

All messages are short, actionable, and never expose internal technical details
to users. Internal detail belongs in the logs.

Format: emoji + **Bold Title** + newline + actionable body
"""

from utils.logging import get_logger

logger = get_logger(__name__)


def format_user_error(code: str, **kwargs) -> str:
    """
    Format a user-friendly error message based on an error code.

    Args:
        code: Error code identifying the type of error
        **kwargs: Dynamic values to insert into error messages
            - permissions: Comma-separated capability names (for MISSING_PERMISSIONS)
            - kind: "channel", "thread" or "forum" (for MISSING_PERMISSIONS)
            - server / map: Dataset names (for INVALID_SERVER, INVALID_MAP)

    Returns:
        User-friendly error message string

    Examples:
        >>> format_user_error("PERMISSION")
        '❌ You must be a server admin to use this command.'

        >>> format_user_error("MISSING_PERMISSIONS", permissions="Send Messages", kind="thread")
        '❌ **Missing permissions**\\nI need Send Messages in this thread.'
    """
    error_messages = {
        "PERMISSION": "❌ You must be a server admin to use this command.",
        "GUILD_ONLY": "❌ **Server only**\nThis command can only be used in a server.",
        "NOT_TEXT_CHANNEL": "❌ **Wrong channel type**\nThis command can only be used in text channels or threads.",
        "MISSING_PERMISSIONS": "❌ **Missing permissions**\nI need {permissions} in this {kind}.",
        "BOT_MEMBER_UNKNOWN": "❌ **Can't verify permissions**\nPlease ensure the bot has the required permissions.",
        "THREAD_ARCHIVED": "❌ **Thread archived**\nUnarchive it first or use the command in an active thread.",
        "THREAD_LOCKED": "❌ **Thread locked**\nUnlock it first or use the command in an unlocked thread.",
        "NO_BINDING": "❌ **Nothing to update**\nNo server/map could be resolved. Use `/caves` first in this channel.",
        "NO_SAVED_CHANNELS": "❌ **No saved channels**\nUse `/caves` in channels to save server/map first.",
        "INVALID_SERVER": "❌ **Unknown server**\n`{server}` is not a valid server.",
        "INVALID_MAP": "❌ **Unknown map**\n`{map}` is not a valid map. Pick one from the suggestions.",
        "FORUM_NOT_FOUND": "❌ **Forum not found**\nThat id isn't a forum channel in this server.",
        "CLEAR_FAILED": "❌ **Couldn't clear messages**\nPlease ensure I have Manage Messages.",
        "UPSTREAM": "❌ **Catalog unavailable**\nCouldn't fetch spots right now. Please try again later.",
        "WEBHOOK_FAILED": "❌ **Webhook failed**\n{error}",
        "WEBHOOK_CREATE_FAILED": "❌ **Webhook not created**\nPlease ensure I have Manage Webhooks and try again.",
        "UNKNOWN": "❌ **Something went wrong**\nAn error occurred while processing the command. Please try again later.",
    }

    if code not in error_messages:
        logger.warning(f"Unknown error code used in format_user_error: {code}")

    message = error_messages.get(code, error_messages["UNKNOWN"])

    try:
        return message.format(**kwargs)
    except KeyError as e:
        return message.replace("{" + str(e).strip("'") + "}", "???")


def format_user_success(code: str, **kwargs) -> str:
    """
    Format a user-friendly success message based on a success code.

    Args:
        code: Success code identifying the type of success
        **kwargs: Dynamic values to insert into success messages
            - count: Messages sent (UPDATED, POSTED, POPULATED)
            - server / map: Dataset names
            - kind: "channel" or "thread"
            - succeeded / failed: Fan-out tallies (FAN_OUT_DONE)

    Returns:
        User-friendly success message string

    Examples:
        >>> format_user_success("FAN_OUT_DONE", succeeded=3, failed=1)
        '✅ Update complete. Success: 3, Failed: 1.'
    """
    success_messages = {
        "UPDATED": "✅ Successfully updated and sent {count} messages for **{server}** on **{map}** to the {kind}.",
        "POSTED": "✅ Sent {count} messages for **{server}** on **{map}** to the {kind}.",
        "NO_RECORDS": "ℹ️ No modded cave spots found for **{server}** on **{map}**.",
        "NO_RECORDS_ANY": "ℹ️ No modded cave spots found for **{server}** on any map.",
        "FAN_OUT_DONE": "✅ Update complete. Success: {succeeded}, Failed: {failed}.",
        "POPULATED": "✅ Created {threads} posts with {count} messages for **{server}**.",
        "WEBHOOK_SENT": "✅ **Message sent**\nMessage ID: {message_id}",
    }

    message = success_messages.get(code, "✅ **Success**\nOperation completed.")

    try:
        return message.format(**kwargs)
    except KeyError:
        return "✅ **Success**\nOperation completed."
