"""Extension-based binary file detection."""

from __future__ import annotations

import posixpath

BINARY_EXTENSIONS: frozenset[str] = frozenset(
    {
        # images
        ".jpg",
        ".jpeg",
        ".png",
        ".gif",
        ".bmp",
        ".ico",
        ".svg",
        # documents
        ".pdf",
        ".doc",
        ".docx",
        ".ppt",
        ".pptx",
        ".xls",
        ".xlsx",
        # archives
        ".zip",
        ".tar",
        ".gz",
        ".rar",
        ".7z",
        # executables and object files
        ".exe",
        ".dll",
        ".so",
        ".dylib",
        ".bin",
        ".dat",
        ".class",
    }
)


def is_binary_path(path: str) -> bool:
    """Return True when *path* has an extension we never decode as text."""
    _, ext = posixpath.splitext(path.replace("\\", "/"))
    return ext.lower() in BINARY_EXTENSIONS


def binary_placeholder(size: int) -> str:
    """Human-readable stand-in for binary content of *size* bytes."""
    return f"[Binary file not displayed - {round(size / 1024)}KB ({size} bytes)]"
