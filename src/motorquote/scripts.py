"""
Browser download helper, exposed as ``motorquote-install-browser``.

pip does not fetch Playwright's browser builds, so run this once after
installing the package (add --with-deps on a bare Linux host).
"""
import subprocess
import sys
from typing import Optional

from motorquote.browser_config import DEFAULT_CONFIG


def install_command(browser: str, with_deps: bool = False) -> list[str]:
    command = [sys.executable, "-m", "playwright", "install", browser]
    if with_deps:
        command.append("--with-deps")
    return command


def postinstall(argv: Optional[list[str]] = None) -> int:
    """
    Download the browser the scraper launches (DEFAULT_CONFIG.browser_type).

    Returns:
        0 on success, 1 if the download failed
    """
    argv = sys.argv[1:] if argv is None else argv
    browser = DEFAULT_CONFIG.browser_type
    command = install_command(browser, with_deps="--with-deps" in argv)

    print(f"Installing {browser} for Playwright...")
    try:
        completed = subprocess.run(command, check=True, capture_output=True, text=True)
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        print(f"Could not install {browser}: {e}", file=sys.stderr)
        details = getattr(e, "stderr", None)
        if details:
            print(details, file=sys.stderr)
        print(f"Run manually: python {' '.join(command[1:])}", file=sys.stderr)
        return 1

    if completed.stdout:
        print(completed.stdout)
    print(f"{browser} installed.")
    return 0


if __name__ == "__main__":
    sys.exit(postinstall())
