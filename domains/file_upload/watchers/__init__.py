"""
File Upload Watchers

Per-directory watchers that report completely written files:
- filesystem.py - watchdog based directory watcher
"""

from domains.file_upload.watchers.filesystem import DirectoryWatcher, FileEvent, WatcherState

__all__ = ["DirectoryWatcher", "FileEvent", "WatcherState"]
