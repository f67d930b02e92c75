"""
utils/constants.py

Purpose: Centralized static content

- All user-facing messages
- Button labels and callback ids
- Quota, wizard and cascade limits
- Localized fallback slide content

(Prevents hardcoding across the codebase)
"""

from datetime import timedelta

# ============================================================
# QUOTA
# ============================================================

DAILY_GENERATION_LIMIT = 3
GENERATION_WINDOW = timedelta(hours=24)

# ============================================================
# WIZARD OPTIONS
# ============================================================

SUPPORTED_LANGUAGES = ("uz", "ru", "en")
DEFAULT_LANGUAGE = "uz"

LANGUAGE_BUTTONS = {
    "uz": "🇺🇿 O'zbekcha",
    "ru": "🇷🇺 Русский",
    "en": "🇬🇧 English",
}

# Language names used inside provider prompts
PROMPT_LANGUAGE_NAMES = {
    "uz": "Uzbek",
    "ru": "Russian",
    "en": "English",
}

TEMPLATE_IDS = (1, 2, 3, 4)
PAGE_COUNT_OPTIONS = (4, 6, 8)

# Ordered questionnaire asked after the topic
BRIEF_FIELDS = ("audience", "presenter_role", "goal", "tone")

BRIEF_QUESTIONS = {
    "audience": "👥 Who is the audience? (e.g. students, investors, colleagues)",
    "presenter_role": "🎤 Who are you presenting as? (e.g. teacher, founder, analyst)",
    "goal": "🎯 What is the goal of the presentation? (e.g. inform, persuade, report)",
    "tone": "🗣 Which tone should it have? (e.g. formal, friendly, inspiring)",
}

MAX_BRIEF_ANSWER_LENGTH = 200
MAX_TOPIC_LENGTH = 300

# ============================================================
# CALLBACK IDS
# ============================================================

CALLBACK_LANGUAGE_PREFIX = "lang:"
CALLBACK_TEMPLATE_PREFIX = "template:"
CALLBACK_PAGES_PREFIX = "pages:"
CALLBACK_IMAGES_YES = "images:yes"
CALLBACK_IMAGES_NO = "images:no"
CALLBACK_BACK = "back"

# ============================================================
# BUTTONS
# ============================================================

BUTTON_NEW_PRESENTATION = "📄 New presentation"
BUTTON_PROFILE = "👤 Profile"
BUTTON_SHARE_PHONE = "📲 Share phone number"
BUTTON_BACK = "⬅️ Back"
BUTTON_IMAGES_YES = "🖼 With images"
BUTTON_IMAGES_NO = "📝 Text only"

PROFILE_TRIGGERS = {
    BUTTON_PROFILE.lower(),
    "profile",
    "profil",
    "/profile",
    "/profil",
}

START_COMMANDS = {"/start"}
HELP_COMMANDS = {"/help"}
CANCEL_COMMANDS = {"/cancel", "cancel"}

# ============================================================
# MESSAGES
# ============================================================

WELCOME_MESSAGE = """👋 *Welcome!*

Use the menu below to create a presentation or check your profile and limits."""

REGISTRATION_PROMPT = """📝 Before using the bot, please register by sharing your phone number."""

REGISTRATION_FOREIGN_CONTACT = """📱 Please tap the registration button and share *your own* phone number."""

REGISTRATION_COMPLETED = """✅ Registration completed. You can now use the bot."""

HELP_MESSAGE = """ℹ️ Send /start to open the main menu.
You can create up to {limit} presentations in any {window_hours} hours."""

ASK_LANGUAGE_MESSAGE = "🌐 Choose the presentation language:"

ASK_TOPIC_MESSAGE = "📝 Send the main topic of the presentation."

INVALID_TOPIC_MESSAGE = "📝 Please send the topic as plain text."

INVALID_BRIEF_ANSWER_MESSAGE = "✍️ Please answer with a short text."

ASK_TEMPLATE_MESSAGE = "🎨 Choose one of the templates (1-4)."

ASK_TEMPLATE_NO_PREVIEW_MESSAGE = "🎨 Template preview is unavailable, but you can still choose a template (1-4)."

ASK_PAGE_COUNT_MESSAGE = "📄 Choose the number of pages:"

ASK_IMAGES_MESSAGE = "🖼 Should the slides include images?"

FLOW_NOT_FOUND_MESSAGE = "⚠️ No active request found. Please tap *📄 New presentation* again."

FLOW_OUT_OF_ORDER_MESSAGE = "⚠️ Please finish the current step first."

FLOW_CANCELLED_MESSAGE = "❎ Cancelled. Use the menu to start again."

GENERATION_STARTED_MESSAGE = "⏳ Preparing your presentation ({page_count} pages). Please wait..."

GENERATION_DONE_CAPTION = "✅ Done! Usage in the last {window_hours} hours: {used}/{limit}."

GENERATION_AGAIN_MESSAGE = "📌 Use the menu to create another presentation."

GENERATION_FAILED_MESSAGE = "⚠️ Something went wrong while creating the presentation. Please try again."

LIMIT_REACHED_MESSAGE = "⛔ Limit reached. You created {used}/{limit} in the last {window_hours} hours. Next generation: {next_available}."

LIMIT_NEXT_AVAILABLE_UNKNOWN = "in {window_hours} hours"

PROFILE_MESSAGE = """👤 Profile: {first_name} ({username})
📞 Phone: {phone}
📊 Generations in the last {window_hours} hours: {used}/{limit}
🧮 Remaining: {remaining}"""

PROFILE_NEXT_AVAILABLE_LINE = "⏰ Next generation (UTC): {next_available}"

PROFILE_FAILED_MESSAGE = "⚠️ Could not load profile data. Please try again."

NOT_PROVIDED = "not provided"

GENERIC_ERROR_MESSAGE = "❌ Something went wrong. Please send /start to begin again."

# ============================================================
# CONTENT CASCADE
# ============================================================

MAX_BULLETS_PER_SLIDE = 5

TOPIC_NORMALIZATION_TEMPERATURE = 0.2
SLIDE_GENERATION_TEMPERATURE = 0.7

# ============================================================
# IMAGE CASCADE
# ============================================================

MAX_IMAGE_QUERIES = 4
IMAGE_QUERY_MAX_LENGTH = 80

# Pexels has no Uzbek locale; Uzbek decks search in English
IMAGE_SEARCH_LOCALES = {
    "uz": "en-US",
    "ru": "ru-RU",
    "en": "en-US",
}

# ============================================================
# LOCALIZED SLIDE CONTENT
# ============================================================

SLIDE_LOCALES = {
    "uz": {
        "section_label": "Bo'lim",
        "default_summary": "Mazkur bo'lim mavzuning asosiy jihatlarini yoritadi.",
        "default_bullets": [
            "Asosiy tushunchalar izohlanadi",
            "Amaliy qo'llash misollari beriladi",
            "Muammolar va yechimlar solishtiriladi",
            "Natijalar qisqacha yakunlanadi",
        ],
        "sections": [
            "Kirish va kontekst",
            "Asosiy tushunchalar",
            "Tahlil va muammolar",
            "Strategiya",
            "Amaliy misollar",
            "Natijalar",
            "Tavsiyalar",
            "Xulosa va keyingi qadamlar",
        ],
        "fallback_bullets": [
            "{topic} bo'yicha asosiy g'oya",
            "Muammo va imkoniyatlar tahlili",
            "Qisqa amaliy yondashuv",
            "Natijaga olib boruvchi taklif",
        ],
        "fallback_summary": "\"{topic}\" mavzusi bo'yicha {section} yoritiladi. Ushbu sahifa taqdimotning muhim nuqtalarini tartibli ko'rsatadi.",
        "section_format": "{section}",
        "fallback_section": "asosiy bo'lim",
    },
    "ru": {
        "section_label": "Раздел",
        "default_summary": "Этот раздел раскрывает ключевые аспекты темы.",
        "default_bullets": [
            "Объясняются основные понятия",
            "Показываются практические примеры",
            "Сравниваются проблемы и решения",
            "Подводятся краткие итоги",
        ],
        "sections": [
            "Введение и контекст",
            "Ключевые понятия",
            "Анализ и проблемы",
            "Стратегия",
            "Практические примеры",
            "Результаты",
            "Рекомендации",
            "Выводы и следующие шаги",
        ],
        "fallback_bullets": [
            "Ключевая идея по теме {topic}",
            "Анализ проблем и возможностей",
            "Краткий практический подход",
            "Предложение для достижения результата",
        ],
        "fallback_summary": "По теме \"{topic}\" раскрывается раздел {section}. Эта страница структурированно показывает основные идеи презентации.",
        "section_format": "«{section}»",
        "fallback_section": "с ключевыми аспектами",
    },
    "en": {
        "section_label": "Section",
        "default_summary": "This section highlights the core aspects of the topic.",
        "default_bullets": [
            "Core concepts are explained",
            "Practical examples are shown",
            "Problems and solutions are compared",
            "Key takeaways are summarized",
        ],
        "sections": [
            "Introduction and context",
            "Core concepts",
            "Analysis and challenges",
            "Strategy",
            "Practical examples",
            "Results",
            "Recommendations",
            "Conclusion and next steps",
        ],
        "fallback_bullets": [
            "Core idea related to {topic}",
            "Analysis of challenges and opportunities",
            "Short practical approach",
            "Proposal to drive measurable outcomes",
        ],
        "fallback_summary": "For the topic \"{topic}\", this slide covers {section}. It presents the most important points in a clear and structured way.",
        "section_format": "{section}",
        "fallback_section": "the key section",
    },
}
