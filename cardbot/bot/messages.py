"""Message templates and text constants (HTML parse mode)."""

from html import escape

from cardbot.core.contracts import (
    PRIVACY_FLAGS,
    ConnectionView,
    PrivacySettings,
    ProfileData,
    ProfileSummary,
    UserProfile,
)
from cardbot.core.conversation import ConversationStep
from cardbot.core.errors import (
    ConnectionExistsError,
    ConnectionRequestError,
    PrivacyDeniedError,
    QuotaExceededError,
    SelfConnectionError,
    UserNotFoundError,
)
from cardbot.core.flows import Flow
from cardbot.core.search import INDUSTRIES, SKILLS

HELP_MESSAGE = (
    "<b>🤖 Business Card Bot - Help</b>\n\n"
    "<b>📋 Profile</b>\n"
    "/profile - Create or edit your professional profile\n"
    "/myprofile - View your own profile\n"
    "/settings - Manage privacy settings\n\n"
    "<b>🔍 Discovery</b>\n"
    "/search &lt;query&gt; - Search for professionals\n"
    "/advancedsearch - Search with filters\n"
    "/next, /prev - Page through search results\n"
    "/view &lt;username|id&gt; - View someone's profile\n\n"
    "<b>🤝 Networking</b>\n"
    "/connect &lt;username|id&gt; - Send a connection request\n"
    "/requests - Pending requests sent to you\n"
    "/accept &lt;id&gt;, /decline &lt;id&gt; - Answer a request\n"
    "/connections - Your connections\n"
    "/disconnect &lt;id&gt; - Remove a connection\n\n"
    "<b>💬 Other</b>\n"
    "/feedback - Send feedback\n"
    "/cancel - Stop the current dialog\n\n"
    "<b>💡 Tips</b>\n"
    "• You can have up to 10 pending connection requests\n"
    "• Search results show 5 profiles per page\n"
    "• Privacy settings control what others can see about you"
)

GENERIC_ERROR = "Sorry, something went wrong. Please try again later."

_FLAG_LABELS = {
    "profile_visible": "Profile visible",
    "allow_search": "Appear in search",
    "allow_connections": "Accept connection requests",
    "show_github": "Show GitHub",
    "show_linkedin": "Show LinkedIn",
    "show_website": "Show website",
    "show_world_id": "Show World ID",
}

_OPTIONAL_HINT = '\n\nSend "skip" to leave it empty.'


def start_message(first_name: str | None, has_profile: bool) -> str:
    """Welcome message, nudging new users to create a profile."""
    greeting = f"👋 Welcome, {escape(first_name)}!" if first_name else "👋 Welcome!"
    if has_profile:
        next_step = "Use /search to find professionals or /requests to see who wants to connect."
    else:
        next_step = "Start by creating your professional profile with /profile."
    return (
        f"<b>{greeting}</b>\n\n"
        "I help you share a virtual business card and build your professional network "
        "right here in Telegram.\n\n"
        f"{next_step}\n\nSee /help for all commands."
    )


def unknown_input() -> str:
    return "I didn't understand that. Send /help to see what I can do."


def rate_limited(seconds: float) -> str:
    return f"⏳ You're sending messages too fast. Please wait {max(1, int(seconds))}s and try again."


def need_profile() -> str:
    return "You need a profile first. Create one with /profile."


# Profile rendering


def profile_card(
    profile: ProfileData,
    username: str | None = None,
    privacy: PrivacySettings | None = None,
    header: str = "📋 <b>Profile</b>",
) -> str:
    """Render a profile. With ``privacy`` given, hidden optional fields are left out."""
    show = privacy or PrivacySettings()
    lines = [header, ""]
    lines.append(f"<b>Name:</b> {escape(profile.name)}")
    if username:
        lines.append(f"<b>Username:</b> @{escape(username)}")
    lines.append(f"<b>Title:</b> {escape(profile.title)}")
    lines.append(f"<b>About:</b> {escape(profile.description)}")
    if profile.github_username and show.show_github:
        lines.append(f"<b>GitHub:</b> @{escape(profile.github_username)}")
    if profile.linkedin_url and show.show_linkedin:
        lines.append(f'<b>LinkedIn:</b> <a href="{escape(profile.linkedin_url)}">View profile</a>')
    if profile.website_url and show.show_website:
        lines.append(f'<b>Website:</b> <a href="{escape(profile.website_url)}">Visit</a>')
    if profile.world_id and show.show_world_id:
        lines.append(f"<b>World ID:</b> {escape(profile.world_id)}")
    return "\n".join(lines)


def my_profile(user: UserProfile, connections: int, pending: int) -> str:
    card = profile_card(user.profile, user.username, header="📋 <b>Your Profile</b>")
    return (
        f"{card}\n\n"
        f"🤝 Connections: {connections}\n"
        f"📬 Pending requests: {pending}\n\n"
        "Use /profile to edit or /settings to change privacy."
    )


def viewed_profile(user: UserProfile, mutual: int, status: str | None) -> str:
    card = profile_card(user.profile, user.username, privacy=user.privacy)
    lines = [card, ""]
    if mutual:
        lines.append(f"👥 Mutual connections: {mutual}")
    if status:
        lines.append(f"🔗 Connection status: {status}")
    return "\n".join(lines).rstrip()


def profile_private() -> str:
    return "This user has chosen to keep their profile private."


def no_profile_yet() -> str:
    return "You don't have a profile yet. Create one with /profile."


# Profile conversation


def profile_intro() -> str:
    return (
        "📝 <b>Create Your Professional Profile</b>\n\n"
        "I'll guide you through each field.\n\n"
        "<b>Required:</b> name (max 50), title (max 100), description (max 300)\n"
        "<b>Optional:</b> GitHub, LinkedIn, website, World ID\n\n"
        "Send /cancel at any time to stop.\n\n"
        "Please start by sending me your full name:"
    )


def edit_confirm_prompt(profile: ProfileData, username: str | None) -> str:
    card = profile_card(profile, username, header="📋 <b>Your Current Profile</b>")
    return f'{card}\n\nWould you like to edit your profile? Send "yes" to start or "no" to cancel.'


_STEP_PROMPTS = {
    ConversationStep.NAME: "Please send me your full name:",
    ConversationStep.TITLE: (
        'Great! Now send me your professional title (e.g. "Senior Software Engineer"):'
    ),
    ConversationStep.DESCRIPTION: (
        "Excellent! Now a brief description of your background and expertise "
        "(max 300 characters):"
    ),
    ConversationStep.GITHUB: "Perfect! Now the optional fields. Send me your GitHub username:",
    ConversationStep.LINKEDIN: "Send me your LinkedIn profile URL:",
    ConversationStep.WEBSITE: "Send me your website URL:",
    ConversationStep.WORLD_ID: "Send me your World ID:",
}

_OPTIONAL_STEPS = frozenset(
    {
        ConversationStep.GITHUB,
        ConversationStep.LINKEDIN,
        ConversationStep.WEBSITE,
        ConversationStep.WORLD_ID,
    }
)


def step_prompt(step: ConversationStep) -> str:
    """Prompt for one profile field."""
    prompt = _STEP_PROMPTS[step]
    if step in _OPTIONAL_STEPS:
        prompt += _OPTIONAL_HINT
    return prompt


def field_error(step: ConversationStep, error: str) -> str:
    text = f"❌ {escape(error)}\n\nPlease try again"
    if step in _OPTIONAL_STEPS:
        text += ' or send "skip"'
    return text + ":"


def profile_summary(profile: ProfileData, username: str | None) -> str:
    card = profile_card(profile, username, header="📋 <b>Profile Summary</b>")
    return f'{card}\n\nPlease review it. Send "yes" to save or "no" to start over.'


def profile_saved(created: bool) -> str:
    if created:
        return (
            "✅ Your profile has been created! You can now use /search to find other "
            "professionals and /connect to send connection requests."
        )
    return "✅ Your profile has been updated successfully!"


def profile_save_failed() -> str:
    return "❌ Failed to save profile. Please try again with /profile."


def cancelled(flow: Flow) -> str:
    return {
        Flow.PROFILE: "Profile editing cancelled. Use /profile to start again.",
        Flow.SETTINGS: "Settings unchanged.",
        Flow.FEEDBACK: "Feedback cancelled.",
        Flow.ADVANCED_SEARCH: "Advanced search cancelled.",
    }[flow]


def nothing_to_cancel() -> str:
    return "There is nothing to cancel."


# Settings conversation


def settings_overview(settings: PrivacySettings, header: str = "⚙️ <b>Privacy Settings</b>") -> str:
    lines = [header, ""]
    values = settings.to_dict()
    for flag in PRIVACY_FLAGS:
        mark = "✅" if values[flag] else "🚫"
        lines.append(f"{mark} {_FLAG_LABELS[flag]} (<code>{flag}</code>)")
    return "\n".join(lines)


def settings_prompt(settings: PrivacySettings) -> str:
    return (
        f"{settings_overview(settings)}\n\n"
        "Send <code>&lt;setting&gt; on</code> or <code>&lt;setting&gt; off</code> to change one, "
        'e.g. <code>show_github off</code>.\nSend "done" to save or "cancel" to discard.'
    )


def setting_staged(flag: str, value: bool) -> str:
    state = "on" if value else "off"
    return f'👌 {_FLAG_LABELS[flag]} will be turned {state}. Change another or send "done".'


def settings_saved(settings: PrivacySettings) -> str:
    return settings_overview(settings, header="✅ <b>Privacy settings saved</b>")


# Feedback


def feedback_prompt() -> str:
    return "💬 Send me your feedback in one message (max 1000 characters), or /cancel."


def feedback_thanks() -> str:
    return "🙏 Thank you for your feedback!"


# Search


def search_usage() -> str:
    return (
        "Please tell me what to search for, 2 to 100 characters.\n"
        "Example: <code>/search software engineer</code>"
    )


def advanced_search_menu() -> str:
    return (
        "🔍 <b>Advanced Search</b>\n\n"
        "Filter professionals by industry, skills, location, experience or availability.\n\n"
        f"<b>Industries:</b> {escape(', '.join(INDUSTRIES))}\n"
        f"<b>Skills:</b> {escape(', '.join(SKILLS))}\n\n"
        "<b>Examples:</b>\n"
        "<code>industry:Technology skills:JavaScript,React</code>\n"
        "<code>location:Berlin experience:senior</code>\n"
        "<code>skills:Python availability:contract</code>\n\n"
        "Send your filters now, or /cancel."
    )


def search_results(
    profiles: list[UserProfile],
    page: int,
    page_size: int,
    query: str | None = None,
    filters: list[str] | None = None,
) -> str:
    title = "🔍 <b>Advanced Search Results</b>" if filters is not None else "🔍 <b>Search Results</b>"
    lines = [f"{title} (page {page + 1})"]
    if query:
        lines.append(f"Query: <i>{escape(query)}</i>")
    if filters:
        lines.append(f"Filters: <i>{escape(' | '.join(filters))}</i>")
    lines.append("")

    offset = page * page_size
    for idx, user in enumerate(profiles, start=offset + 1):
        handle = f"@{escape(user.username)}" if user.username else str(user.telegram_id)
        lines.append(
            f"<b>{idx}.</b> {escape(user.profile.name)} - <i>{escape(user.profile.title)}</i>"
        )
        lines.append(escape(user.profile.description))
        lines.append(f"/view {handle} · /connect {handle}")
        lines.append("")

    lines.append("Use /next and /prev to navigate.")
    return "\n".join(lines)


def search_empty() -> str:
    return "No profiles found. Try different keywords or /advancedsearch."


def no_active_search() -> str:
    return "No active search. Use /search or /advancedsearch to start one."


def no_more_results() -> str:
    return "No more results."


def first_page() -> str:
    return "You're already on the first page."


# Connections


def connect_usage() -> str:
    return "Please specify who to connect with. Example: /connect johndoe or /connect 123456789"


def view_usage() -> str:
    return "Please specify whose profile to view. Example: /view johndoe or /view 123456789"


def user_not_found() -> str:
    return "User not found. Please check the username or user ID and try again."


def connection_error(error: ConnectionRequestError) -> str:
    """User-facing text for a failed connection request."""
    if isinstance(error, ConnectionExistsError):
        if error.status == "accepted":
            return "You are already connected with this user."
        if error.status == "pending":
            return "A connection request between you two is already pending."
        return "A connection with this user already exists."
    if isinstance(error, QuotaExceededError):
        return (
            f"You already have {error.limit} pending requests. "
            "Wait for some to be answered before sending more."
        )
    if isinstance(error, PrivacyDeniedError):
        return "This user is not accepting new connections."
    if isinstance(error, SelfConnectionError):
        return "You cannot connect with yourself."
    if isinstance(error, UserNotFoundError):
        return user_not_found()
    return f"Could not send connection request: {escape(str(error))}"


def _who(summary: ProfileSummary) -> str:
    handle = f"@{summary.username}" if summary.username else str(summary.telegram_id)
    return f"{escape(summary.name)} ({escape(handle)})"


def request_sent(summary: ProfileSummary) -> str:
    return f"📨 Connection request sent to {_who(summary)}."


def request_received(requester: ProfileSummary) -> str:
    return (
        f"🤝 <b>New connection request</b>\n\n"
        f"{_who(requester)}\n<i>{escape(requester.title)}</i>\n\n"
        f"Reply /accept {requester.telegram_id} or /decline {requester.telegram_id}."
    )


def request_accepted_notice(receiver: ProfileSummary) -> str:
    return f"🎉 {_who(receiver)} accepted your connection request!"


def requests_empty() -> str:
    return "📭 You have no pending connection requests."


def requests_header(count: int) -> str:
    return f"📬 <b>Pending requests</b> ({count})"


def request_item(view: ConnectionView) -> str:
    return (
        f"{_who(view.other)}\n<i>{escape(view.other.title)}</i>\n"
        f"Received {view.created_at:%Y-%m-%d}"
    )


def accept_usage() -> str:
    return "Please specify the user ID to accept. Example: /accept 123456789"


def decline_usage() -> str:
    return "Please specify the user ID to decline. Example: /decline 123456789"


def accepted(summary: ProfileSummary | None) -> str:
    if summary is None:
        return "✅ Connection request accepted."
    return f"✅ You are now connected with {_who(summary)}."


def declined() -> str:
    return "Connection request declined."


def no_pending_request() -> str:
    return "No pending request found from that user, or it was already handled."


def connections_empty() -> str:
    return "You have no connections yet. Use /search to find people to connect with."


def connections_list(views: list[ConnectionView]) -> str:
    lines = [f"🤝 <b>Your connections</b> ({len(views)})", ""]
    for view in views:
        lines.append(f"• {_who(view.other)} - <i>{escape(view.other.title)}</i>")
    lines.append("")
    lines.append("Use /view to see a profile or /disconnect &lt;id&gt; to remove one.")
    return "\n".join(lines)


def disconnect_usage() -> str:
    return "Please specify the user ID to disconnect. Example: /disconnect 123456789"


def disconnected() -> str:
    return "Connection removed."


def not_connected() -> str:
    return "There is no connection with that user."
