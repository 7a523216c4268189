# 站点设置的默认值与可选枚举；记录本身以 dict 形式保存在 SettingsStore 中

FEATURED_STREAMS = ("auto", "main", "gaming", "custom")

THEMES = (
    "default",
    "christmas",
    "halloween",
    "valentines",
    "newyear",
    "stpatrick",
    "easter",
    "custom",
)

CUSTOM_THEME_KEYS = (
    "primaryColor",
    "secondaryColor",
    "accentColor",
    "backgroundColor",
    "textColor",
    "backgroundImage",
)

WEBHOOK_LOG_LEVELS = ("info", "warning", "error")

STREAM_SETTINGS_DEFAULTS = {
    "featuredStream": "auto",
    "customEmbedUrl": None,
    "scheduleImageUrl": None,
    "updatedAt": None,
}

THEME_SETTINGS_DEFAULTS = {
    "currentTheme": "default",
    "customTheme": None,
    "backgroundImageUrl": None,
    "updatedAt": None,
}

WEBHOOK_SETTINGS_DEFAULTS = {
    "url": "",
    "logLevel": "info",
    "realTimeLogging": True,
    "lastBackup": None,
    "updatedAt": None,
}
