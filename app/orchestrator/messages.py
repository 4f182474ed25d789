"""
Fixed assistant strings, per locale.

The oracle writes its own replies; these cover the turns the core
produces by itself (greeting, fallbacks, try-on bookkeeping).
"""

from ..core.config import get_settings

DEFAULT_LOCALE = "ja"

_CATALOG: dict[str, dict[str, str]] = {
    "ja": {
        "greeting": (
            "こんにちは！ファッションやインテリアのお買い物をお手伝いする"
            "「Visual Shopping Assistant」です。何をお探しですか？"
        ),
        "apology": "申し訳ありません、エラーが発生しました。もう一度お試しください。",
        "turn_failed": "申し訳ありません、うまく処理できませんでした。もう一度お試しください。",
        "upload_for_tryon": "試着するには、まずあなたの写真をアップロードしてください。",
        "tryon_request": "{name}を試着したいです。",
        "tryon_done": "「{name}」の試着イメージを作成しました！",
        "products_found": "{count}件の商品が見つかりました。「試着する」ボタンを押して試してみましょう！",
        "evaluation_reason": "体のラインを崩さず、自然なフィット感で再現しました。",
        "image_reference": "こちらの画像を参考にしてください。",
    },
    "en": {
        "greeting": (
            "Hi! I'm your Visual Shopping Assistant for fashion and interior items. "
            "What are you looking for?"
        ),
        "apology": "Sorry, something went wrong. Please try again.",
        "turn_failed": "Sorry, I couldn't process that. Please try again.",
        "upload_for_tryon": "To try something on, please upload a photo of yourself first.",
        "tryon_request": "I'd like to try on {name}.",
        "tryon_done": "Here is your try-on image for \"{name}\"!",
        "products_found": "I found {count} products. Press \"Try on\" to see how they look!",
        "evaluation_reason": "Rendered with a natural fit, keeping your body lines unchanged.",
        "image_reference": "Please use this image as a reference.",
    },
}


def text(key: str, locale: str = "", **params) -> str:
    """Look up a fixed string. Unknown locales fall back to Japanese."""
    locale = (locale or get_settings().assistant_locale).lower()
    table = _CATALOG.get(locale, _CATALOG[DEFAULT_LOCALE])
    template = table.get(key) or _CATALOG[DEFAULT_LOCALE][key]
    return template.format(**params) if params else template
