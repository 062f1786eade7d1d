# steps/variety.py
#
# Variety wallpaper rotator: the config file and the autostart entry are
# maintained by rewriting only the keys debkit owns, so user edits elsewhere
# in those files survive every run.

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

SYSTEM_VARIETY_CONF = Path("/usr/share/variety/config/variety.conf")
SYSTEM_DESKTOP_ENTRY = Path("/usr/share/applications/variety.desktop")
FALLBACK_DESKTOP_ENTRY = "[Desktop Entry]\nType=Application\nName=Variety\nExec=variety\n"

ROOT_KEYS = (
    ("change_enabled", "True"),
    ("change_on_start", "True"),
    ("internet_enabled", "False"),
    ("wallpaper_auto_rotate", "True"),
    ("smart_notice_shown", "True"),
    ("smart_register_shown", "True"),
    ("stats_notice_shown", "True"),
)


def _is_section(line: str) -> bool:
    s = line.strip()
    return s.startswith("[") and s.endswith("]")


def _parse_key_value(line: str) -> Optional[Tuple[str, str]]:
    s = line.strip()
    if not s or s.startswith("#") or "=" not in s:
        return None
    key, value = s.split("=", 1)
    return key.strip(), value.strip()


def upsert_root_key(lines: List[str], key: str, value: str) -> List[str]:
    """
    Set `key = value` outside any section.

    The first occurrence is rewritten in place, later duplicates are dropped.
    A new key goes just before the first section header.
    """
    out: List[str] = []
    seen = False
    for line in lines:
        kv = None if _is_section(line) else _parse_key_value(line)
        if kv and kv[0] == key:
            if not seen:
                out.append(f"{key} = {value}")
                seen = True
            continue
        out.append(line)

    if not seen:
        insert_at = next((i for i, line in enumerate(out) if _is_section(line)), len(out))
        out.insert(insert_at, f"{key} = {value}")
    return out


def set_section(lines: List[str], section: str, body: List[str]) -> List[str]:
    """Replace the body of `[section]`, appending the section if absent."""
    header = f"[{section}]"
    try:
        start = next(i for i, line in enumerate(lines) if line.strip() == header)
    except StopIteration:
        out = list(lines)
        if out and out[-1] != "":
            out.append("")
        return out + [header, *body]

    end = next((i for i in range(start + 1, len(lines)) if _is_section(lines[i])), len(lines))
    return lines[: start + 1] + list(body) + lines[end:]


def _to_text(lines: List[str]) -> str:
    out = "\n".join(lines)
    return out if out.endswith("\n") else out + "\n"


def configure_variety_conf_text(existing: str, folder: str, interval_minutes: int) -> str:
    interval_seconds = max(interval_minutes * 60, 5)
    lines = existing.splitlines()

    for key, value in ROOT_KEYS:
        lines = upsert_root_key(lines, key, value)
    lines = upsert_root_key(lines, "change_interval", str(interval_seconds))
    lines = set_section(lines, "sources", [f"src1 = True|folder|{folder}"])
    return _to_text(lines)


def default_variety_conf() -> str:
    try:
        return SYSTEM_VARIETY_CONF.read_text(encoding="utf-8")
    except OSError:
        return ""


def upsert_desktop_key(lines: List[str], key: str, value: str) -> List[str]:
    prefix = f"{key}="
    out: List[str] = []
    seen = False
    for line in lines:
        if line.startswith(prefix):
            if not seen:
                out.append(f"{key}={value}")
                seen = True
            continue
        out.append(line)
    if not seen:
        out.append(f"{key}={value}")
    return out


def normalize_desktop_entry(content: str) -> str:
    lines = content.splitlines() if "[Desktop Entry]" in content else ["[Desktop Entry]"]
    lines = upsert_desktop_key(lines, "X-GNOME-Autostart-enabled", "true")
    lines = upsert_desktop_key(lines, "Hidden", "false")
    return _to_text(lines)


def default_desktop_entry() -> str:
    try:
        return SYSTEM_DESKTOP_ENTRY.read_text(encoding="utf-8")
    except OSError:
        return FALLBACK_DESKTOP_ENTRY


def variety_conf_path(home: Path) -> Path:
    return home / ".config" / "variety" / "variety.conf"


def autostart_path(home: Path) -> Path:
    return home / ".config" / "autostart" / "variety.desktop"
