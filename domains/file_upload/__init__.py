"""
File Upload Domain

Watches configured directories and uploads new files to Telegram chats:
- watchers/ - per-directory watchdog watchers
- taggers/ - tag derivation strategies (plain, regexp, expression)
- delivery/ - rate-limited Telegram delivery
- uploader.py - task ownership and the upload event loop
"""

__all__ = ["delivery", "taggers", "uploader", "watchers"]
