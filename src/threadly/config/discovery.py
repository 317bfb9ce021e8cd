"""Locations of the Threadly config file and data directory."""

from pathlib import Path

import platformdirs


def find_toml_config_file() -> Path | None:
    """Find the TOML configuration file for threadly.

    Searches in the following order:
    1. .threadly.toml or threadly.toml in current directory
    2. .threadly.toml or threadly.toml in git repository root (if in a git repo)
    3. config.toml in user config directory/threadly/ (platform-specific)
    """
    candidates = [
        Path(".threadly.toml").resolve(),
        Path("threadly.toml").resolve(),
    ]

    git_root = find_git_root()
    if git_root:
        candidates.extend(
            [
                git_root / ".threadly.toml",
                git_root / "threadly.toml",
            ]
        )

    candidates.append(get_threadly_config_dir() / "config.toml")

    for candidate in candidates:
        if candidate.exists() and candidate.is_file():
            return candidate

    return None


def find_git_root(path: Path | None = None) -> Path | None:
    """Find the root directory of a git repository."""
    import subprocess  # nosec B404 - safe usage for git commands only

    if path is None:
        path = Path.cwd()

    try:
        # nosec B603, B607 - safe: hardcoded git command, no user input
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=path,
            capture_output=True,
            text=True,
            check=True,
        )
        return Path(result.stdout.strip())
    except (subprocess.CalledProcessError, FileNotFoundError):
        return None


def get_threadly_config_dir() -> Path:
    """Get the threadly configuration directory."""
    return Path(platformdirs.user_config_dir("threadly", appauthor=False))


def get_threadly_data_dir() -> Path:
    """Get the threadly data directory (default database location)."""
    return Path(platformdirs.user_data_dir("threadly", appauthor=False))
