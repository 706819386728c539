from __future__ import annotations

import os
from enum import Enum
from typing import Mapping, Optional


class DesktopEnvironment(Enum):
    OTHER = "other"
    CINNAMON = "cinnamon"
    GNOME = "gnome"
    KDE3 = "kde3"
    KDE4 = "kde4"
    KDE5 = "kde5"
    PANTHEON = "pantheon"
    UNITY = "unity"
    XFCE = "xfce"


class SelectedLinuxBackend(Enum):
    BASIC_TEXT = "basic"
    GNOME_ANY = "gnome"
    GNOME_KEYRING = "gnome-keyring"
    GNOME_LIBSECRET = "gnome-libsecret"
    KWALLET = "kwallet"
    KWALLET5 = "kwallet5"


_GNOME_FAMILY = {
    DesktopEnvironment.CINNAMON,
    DesktopEnvironment.GNOME,
    DesktopEnvironment.PANTHEON,
    DesktopEnvironment.UNITY,
    DesktopEnvironment.XFCE,
}


def get_desktop_environment(env: Optional[Mapping[str, str]] = None) -> DesktopEnvironment:
    """Classify the running Linux desktop from its environment variables.

    XDG_CURRENT_DESKTOP wins (it may list several desktops, highest
    priority first); DESKTOP_SESSION and a few older session variables are
    the fallbacks.
    """
    if env is None:
        env = os.environ

    xdg_current_desktop = env.get("XDG_CURRENT_DESKTOP")
    if xdg_current_desktop is not None:
        for value in (v.strip() for v in xdg_current_desktop.split(":")):
            if not value:
                continue
            if value == "Unity":
                if "gnome-fallback" in env.get("DESKTOP_SESSION", ""):
                    return DesktopEnvironment.GNOME
                return DesktopEnvironment.UNITY
            if value == "GNOME":
                return DesktopEnvironment.GNOME
            if value == "X-Cinnamon":
                return DesktopEnvironment.CINNAMON
            if value == "KDE":
                if env.get("KDE_SESSION_VERSION") == "5":
                    return DesktopEnvironment.KDE5
                return DesktopEnvironment.KDE4
            if value == "Pantheon":
                return DesktopEnvironment.PANTHEON
            if value == "XFCE":
                return DesktopEnvironment.XFCE

    desktop_session = env.get("DESKTOP_SESSION")
    if desktop_session is not None:
        if desktop_session in ("gnome", "mate"):
            return DesktopEnvironment.GNOME
        if desktop_session in ("kde4", "kde-plasma"):
            return DesktopEnvironment.KDE4
        if desktop_session == "kde":
            # Plain "kde" is KDE4 on systems that also export the version.
            if "KDE_SESSION_VERSION" in env:
                return DesktopEnvironment.KDE4
            return DesktopEnvironment.KDE3
        if "xfce" in desktop_session or desktop_session == "xubuntu":
            return DesktopEnvironment.XFCE

    if "GNOME_DESKTOP_SESSION_ID" in env:
        return DesktopEnvironment.GNOME
    if "KDE_FULL_SESSION" in env:
        if "KDE_SESSION_VERSION" in env:
            return DesktopEnvironment.KDE4
        return DesktopEnvironment.KDE3
    return DesktopEnvironment.OTHER


def select_backend(password_store: str, desktop_env: DesktopEnvironment) -> SelectedLinuxBackend:
    """Pick the secret store family for an explicit choice or a desktop.

    An explicit ``password_store`` ("kwallet", "gnome", ...) always wins;
    "auto" or an unknown value falls back to the desktop's native store.
    """
    store = (password_store or "").strip().lower()
    for backend in SelectedLinuxBackend:
        if store == backend.value:
            return backend

    if desktop_env in _GNOME_FAMILY:
        return SelectedLinuxBackend.GNOME_ANY
    if desktop_env == DesktopEnvironment.KDE4:
        return SelectedLinuxBackend.KWALLET
    if desktop_env == DesktopEnvironment.KDE5:
        return SelectedLinuxBackend.KWALLET5
    return SelectedLinuxBackend.BASIC_TEXT
