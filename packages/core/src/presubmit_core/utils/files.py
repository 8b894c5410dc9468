import fnmatch

NON_CODE_EXTENSIONS = (
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".ico",
    ".webp",
    ".pdf",
    ".woff",
    ".woff2",
    ".ttf",
    ".otf",
    ".mp4",
    ".mp3",
    ".zip",
    ".tar",
    ".gz",
    ".lock",  # e.g. package-lock.json, poetry.lock
)


def is_excluded(filename: str, patterns: list[str]) -> bool:
    """Return True if filename matches any exclude pattern.

    Patterns may be globs on the full path ("src/generated/*.py"), globs on
    the basename ("*.min.js") or directory names ("migrations/"), which
    match any file in that tree.
    """
    basename = filename.rsplit("/", 1)[-1]
    for pattern in patterns:
        if fnmatch.fnmatch(filename, pattern) or fnmatch.fnmatch(basename, pattern):
            return True
        prefix = pattern.rstrip("/") + "/"
        if filename.startswith(prefix) or ("/" + prefix) in filename:
            return True
    return False


def is_reviewable(filename: str, exclude: list[str] | None = None) -> bool:
    """Whether a changed file should be sent to the reviewer."""
    if filename.lower().endswith(NON_CODE_EXTENSIONS):
        return False
    return not is_excluded(filename, exclude or [])
