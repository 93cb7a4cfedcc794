"""Catalog of supported advertising platforms.

Each entry carries the display data for the picker (icon + colour) and a
search-context hint that steers the web search toward the platform's official
help pages.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class Platform(BaseModel):
    """An advertising platform the user can ask about."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    search_context: str
    icon: str
    color: str
    domains: tuple[str, ...] = ()


PLATFORMS: tuple[Platform, ...] = (
    Platform(
        id="google",
        name="Google Ads",
        search_context="Google 広告 ポリシー ヘルプ support.google.com/adspolicy",
        icon="G",
        color="#2563eb",
        domains=("support.google.com",),
    ),
    Platform(
        id="yahoo",
        name="Yahoo! Ads",
        search_context="Yahoo!広告 広告掲載基準 入稿規定 ads-help.yahoo-net.jp",
        icon="Y!",
        color="#dc2626",
        domains=("ads-help.yahoo-net.jp", "marketing.yahoo.co.jp"),
    ),
    Platform(
        id="meta",
        name="Meta (Facebook/Instagram)",
        search_context="Meta 広告ポリシー 広告規定 transparency.meta.com facebook.com/business/help",
        icon="f",
        color="#1d4ed8",
        domains=("transparency.meta.com", "www.facebook.com"),
    ),
    Platform(
        id="tiktok",
        name="TikTok Ads",
        search_context="TikTok 広告ポリシー ads.tiktok.com/help",
        icon="♪",
        color="#111827",
        domains=("ads.tiktok.com",),
    ),
    Platform(
        id="line",
        name="LINE Ads",
        search_context="LINE広告 審査ガイドライン 広告掲載基準 linebiz.com",
        icon="L",
        color="#16a34a",
        domains=("www.linebiz.com", "linebiz.com"),
    ),
    Platform(
        id="x",
        name="X (Twitter) Ads",
        search_context="X 広告ポリシー business.x.com/ja/help",
        icon="𝕏",
        color="#0f172a",
        domains=("business.x.com", "business.twitter.com"),
    ),
)

_BY_ID: dict[str, Platform] = {p.id: p for p in PLATFORMS}


def get_platform(platform_id: str) -> Platform:
    """Return the platform with *platform_id*.

    Raises:
        KeyError: If no platform has that id.
    """
    try:
        return _BY_ID[platform_id]
    except KeyError:
        raise KeyError(f"Unknown platform: {platform_id!r}") from None


def find_by_name(name: str) -> Platform:
    """Return the platform whose display name is *name*, else the first one.

    History entries store the display name only, so restoring an entry whose
    platform was since removed falls back to the default selection.
    """
    for platform in PLATFORMS:
        if platform.name == name:
            return platform
    return PLATFORMS[0]
