"""BrowserCron: scheduled natural-language browser automation."""

__version__ = "0.1.0"
