"""Interface strings for the rendered pages, and request language detection."""

from typing import Dict

from fastapi import Request

DEFAULT_LANG = "en"

TRANSLATIONS: Dict[str, Dict[str, str]] = {
    "en": {
        "edit_placeholder": "Start typing here. Your note is saved automatically.",
        "saving": "Saving...",
        "saved": "Saved",
        "save_failed": "Save failed",
        "password": "Password",
        "set_password": "Set password",
        "password_placeholder": "Leave empty to remove the password",
        "need_password": "This note is protected by a password.",
        "unlock": "Unlock",
        "share": "Share",
        "shared_link": "Shared link",
        "stop_sharing": "Stop sharing",
        "mode": "Display mode",
        "mode_plain": "Plain text",
        "mode_markdown": "Markdown",
        "directory": "Directory",
        "new_note": "New note",
        "note_count": "notes",
        "no_notes": "No notes yet.",
        "title": "Title",
        "updated": "Updated",
        "protected": "Protected",
        "shared": "Shared",
        "not_found": "Nothing here.",
        "error": "Something went wrong.",
        "read_only": "Read-only shared note",
    },
    "zh": {
        "edit_placeholder": "在这里输入，内容会自动保存。",
        "saving": "保存中...",
        "saved": "已保存",
        "save_failed": "保存失败",
        "password": "密码",
        "set_password": "设置密码",
        "password_placeholder": "留空则取消密码",
        "need_password": "该笔记已设置密码。",
        "unlock": "解锁",
        "share": "分享",
        "shared_link": "分享链接",
        "stop_sharing": "取消分享",
        "mode": "显示模式",
        "mode_plain": "纯文本",
        "mode_markdown": "Markdown",
        "directory": "目录",
        "new_note": "新笔记",
        "note_count": "篇笔记",
        "no_notes": "还没有笔记。",
        "title": "标题",
        "updated": "更新时间",
        "protected": "已加密",
        "shared": "已分享",
        "not_found": "页面不存在。",
        "error": "出错了。",
        "read_only": "只读分享笔记",
    },
}

def normalize_lang(tag: str) -> str:
    return "zh" if tag.strip().lower().startswith("zh") else DEFAULT_LANG

def get_i18n(request: Request) -> str:
    """Pick the page language from ``?lang=`` or the first Accept-Language tag."""
    explicit = request.query_params.get("lang")
    if explicit:
        return normalize_lang(explicit)
    header = request.headers.get("accept-language", "")
    first = header.split(",")[0].split(";")[0]
    return normalize_lang(first) if first else DEFAULT_LANG

def strings_for(lang: str) -> Dict[str, str]:
    return TRANSLATIONS.get(lang, TRANSLATIONS[DEFAULT_LANG])
