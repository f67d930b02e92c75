"""
utils/telegram_utils.py

Purpose: Telegram message builders

- Constructs text, photo and document payloads
- Reply keyboards (main menu, registration) and inline keyboards
- Abstracts Bot API formatting away from the flow handlers
"""

from typing import List, Dict, Optional, Any

from utils.constants import (
    BUTTON_BACK,
    BUTTON_IMAGES_NO,
    BUTTON_IMAGES_YES,
    BUTTON_NEW_PRESENTATION,
    BUTTON_PROFILE,
    BUTTON_SHARE_PHONE,
    CALLBACK_BACK,
    CALLBACK_IMAGES_NO,
    CALLBACK_IMAGES_YES,
    CALLBACK_LANGUAGE_PREFIX,
    CALLBACK_PAGES_PREFIX,
    CALLBACK_TEMPLATE_PREFIX,
    LANGUAGE_BUTTONS,
    PAGE_COUNT_OPTIONS,
    TEMPLATE_IDS,
)


def create_text_message(
    text: str,
    reply_markup: Optional[Dict[str, Any]] = None,
    parse_mode: Optional[str] = "Markdown"
) -> Dict[str, Any]:
    """
    Creates a simple text message payload.

    Args:
        text: Message text (Telegram Markdown)
        reply_markup: Optional keyboard
        parse_mode: Bot API parse mode, None for plain text

    Returns:
        Message payload dict
    """
    payload: Dict[str, Any] = {"type": "text", "text": text}
    if reply_markup:
        payload["reply_markup"] = reply_markup
    if parse_mode:
        payload["parse_mode"] = parse_mode
    return payload


def create_photo_message(
    photo_path: str,
    caption: Optional[str] = None,
    reply_markup: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Creates a photo message from a local file.
    """
    payload: Dict[str, Any] = {"type": "photo", "path": photo_path}
    if caption:
        payload["caption"] = caption
    if reply_markup:
        payload["reply_markup"] = reply_markup
    return payload


def create_document_message(
    document_path: str,
    filename: str,
    caption: Optional[str] = None,
    reply_markup: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Creates a document message (for the generated PDF).

    Args:
        document_path: Local path of the document
        filename: File name shown to the user
        caption: Optional caption

    Returns:
        Document message payload
    """
    payload: Dict[str, Any] = {
        "type": "document",
        "path": document_path,
        "filename": filename,
    }
    if caption:
        payload["caption"] = caption
    if reply_markup:
        payload["reply_markup"] = reply_markup
    return payload


# ============================================================
# REPLY KEYBOARDS
# ============================================================

def main_menu_keyboard() -> Dict[str, Any]:
    return {
        "keyboard": [[{"text": BUTTON_NEW_PRESENTATION}, {"text": BUTTON_PROFILE}]],
        "resize_keyboard": True,
    }


def registration_keyboard() -> Dict[str, Any]:
    return {
        "keyboard": [[{"text": BUTTON_SHARE_PHONE, "request_contact": True}]],
        "resize_keyboard": True,
        "one_time_keyboard": True,
    }


def remove_keyboard() -> Dict[str, Any]:
    return {"remove_keyboard": True}


# ============================================================
# INLINE KEYBOARDS
# ============================================================

def inline_keyboard(rows: List[List[Dict[str, str]]]) -> Dict[str, Any]:
    """
    Creates an inline keyboard.

    Args:
        rows: Rows of buttons, each a dict with 'text' and 'callback_data'

    Example:
        rows = [[{"text": "1", "callback_data": "template:1"}]]
    """
    return {"inline_keyboard": rows}


def _back_row() -> List[Dict[str, str]]:
    return [{"text": BUTTON_BACK, "callback_data": CALLBACK_BACK}]


def language_keyboard() -> Dict[str, Any]:
    return inline_keyboard([
        [
            {"text": label, "callback_data": f"{CALLBACK_LANGUAGE_PREFIX}{code}"}
            for code, label in LANGUAGE_BUTTONS.items()
        ]
    ])


def back_keyboard() -> Dict[str, Any]:
    return inline_keyboard([_back_row()])


def template_keyboard() -> Dict[str, Any]:
    buttons = [
        {"text": str(template_id), "callback_data": f"{CALLBACK_TEMPLATE_PREFIX}{template_id}"}
        for template_id in TEMPLATE_IDS
    ]
    # Two templates per row, like the preview image
    rows = [buttons[i:i + 2] for i in range(0, len(buttons), 2)]
    rows.append(_back_row())
    return inline_keyboard(rows)


def page_count_keyboard() -> Dict[str, Any]:
    return inline_keyboard([
        [
            {"text": str(count), "callback_data": f"{CALLBACK_PAGES_PREFIX}{count}"}
            for count in PAGE_COUNT_OPTIONS
        ],
        _back_row(),
    ])


def image_preference_keyboard() -> Dict[str, Any]:
    return inline_keyboard([
        [
            {"text": BUTTON_IMAGES_YES, "callback_data": CALLBACK_IMAGES_YES},
            {"text": BUTTON_IMAGES_NO, "callback_data": CALLBACK_IMAGES_NO},
        ],
        _back_row(),
    ])
