"""
Stable anonymous identifiers and display names derived from user ids
"""

ANONYMOUS_USER_ID = "anonymous"
ANONYMOUS_DISPLAY_NAME = "AnonymousPicker"

ADJECTIVES = [
    "Fire", "Ice", "Lightning", "Storm", "Steel", "Shadow", "Blazing", "Mighty",
    "Swift", "Golden", "Mystic", "Crimson", "Azure", "Jade", "Silver", "Bronze",
    "Diamond", "Emerald", "Vapor", "Echo",
]
NOUNS = [
    "Picker", "Prophet", "Analyst", "Streak", "Eagle", "Tiger", "Champion",
    "Master", "Wizard", "Legend", "Striker", "Scout", "Oracle", "Hunter",
    "Guardian", "Titan", "Specter", "Vanguard", "Pioneer", "Maverick",
]


def _to_int32(value):
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def simple_hash(value):
    """
    Deterministic 32-bit string hash (not cryptographic).

    Iterates over UTF-16 code units so ids hash the same way the browser
    client hashes them.
    """
    if value is None:
        value = ""
    data = str(value).encode("utf-16-le")

    result = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        result = _to_int32((result << 5) - result + unit)

    return abs(result)


def hashed_user_id(user_id):
    """Leaderboard id for a user: the hash rendered as a string"""
    return str(simple_hash(user_id))


def generate_display_name(user_id):
    """Consistent anonymous name such as 'StormOracle417' for a user id"""
    hash_value = simple_hash(user_id)
    adjective = ADJECTIVES[hash_value % len(ADJECTIVES)]
    noun = NOUNS[(hash_value // len(ADJECTIVES)) % len(NOUNS)]
    number = (hash_value // (len(ADJECTIVES) * len(NOUNS))) % 999 + 1

    return f"{adjective}{noun}{number}"


def display_name_for(user):
    """Pick the display name for an identity record (None means anonymous)"""
    if not user or not user.get("id"):
        return ANONYMOUS_DISPLAY_NAME

    if user.get("username"):
        return user["username"]
    if user.get("name"):
        return user["name"]

    email = user.get("email") or ""
    local_part = email.split("@")[0]
    if local_part:
        return local_part

    return generate_display_name(user["id"])
