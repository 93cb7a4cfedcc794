"""Prompt construction for the feasibility check."""

from __future__ import annotations


class EmptyQueryError(ValueError):
    """Raised when the user's question is empty after trimming."""


#: Verdict line the model is asked to start with; the classifier keys on these.
VERDICT_CHOICES = ("OK", "NG", "条件付きOK", "要確認")

SYSTEM_PROMPT = (
    "あなたはWeb広告運用のコンプライアンス専門家です。"
    "各広告媒体の公式ヘルプ・広告ポリシー・入稿規定を検索し、"
    "根拠に基づいて出稿可否を判定してください。推測で断定せず、"
    "公式情報が見つからない場合は「要確認」としてください。"
)

_USER_TEMPLATE = """\
媒体: {platform_name}
検索コンテキスト: {search_context}

以下の質問について、上記媒体の公式情報を検索して回答してください。

質問:
{query}

回答は必ず次の形式のMarkdownで出力してください。

判定: {choices}

## 概要
結論を2〜3文で簡潔に。

## 詳細
根拠となるポリシーや規定、条件、注意点を箇条書きで。
"""


def build_prompt(platform_name: str, search_context: str, query: str) -> str:
    """Return the user message for one feasibility check.

    The question is embedded verbatim; only the emptiness check trims it.

    Raises:
        EmptyQueryError: If *query* is empty or whitespace only.
    """
    if not query or not query.strip():
        raise EmptyQueryError("Query must not be empty.")

    return _USER_TEMPLATE.format(
        platform_name=platform_name,
        search_context=search_context,
        query=query,
        choices=" / ".join(VERDICT_CHOICES),
    )
