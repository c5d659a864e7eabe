# server/alert_engine/infrastructure/notifications/templates/loader.py
from __future__ import annotations
"""
Chargement de templates depuis le paquet (sujet / corps des e-mails d'alerte).
"""
from importlib.resources import files
from typing import Any


def load_template(name: str) -> str:
    """
    Lit un fichier template situé dans le même package.
    Ex: load_template("alert_email_subject.txt")
    """
    return files(__package__).joinpath(name).read_text(encoding="utf-8")


def render_template(name: str, **context: Any) -> str:
    return load_template(name).format_map(context).strip()
