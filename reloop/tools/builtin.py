"""
Built-in tools.
"""

from reloop.tools.decorator import tool

TWEET_LIMIT = 280


@tool
def count_characters(text: str) -> dict:
    """Count the number of characters in a text. Use this to verify tweet length before finalizing."""
    count = len(text)
    remaining = TWEET_LIMIT - count
    within = count <= TWEET_LIMIT
    if within:
        status = f"{count}/{TWEET_LIMIT} characters ({remaining} remaining)"
    else:
        status = f"{count}/{TWEET_LIMIT} characters ({abs(remaining)} over limit)"
    return {
        "characterCount": count,
        "characterCountWithoutSpaces": len("".join(text.split())),
        "remainingCharacters": remaining,
        "isWithinLimit": within,
        "status": status,
    }


DRAFTING_TOOLS = [count_characters]

# Research runs on the model alone unless a deployment registers search tools
RESEARCH_TOOLS: list = []
