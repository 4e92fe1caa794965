from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Protocol

import streamlit as st

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


@dataclass(slots=True)
class Toast:
    level: str
    message: str


@dataclass
class ToastLog:
    """Keeps toasts in memory, for headless runs and tests."""

    toasts: List[Toast] = field(default_factory=list)

    def success(self, message: str) -> None:
        self.toasts.append(Toast("success", message))

    def error(self, message: str) -> None:
        self.toasts.append(Toast("error", message))

    @property
    def errors(self) -> List[str]:
        return [toast.message for toast in self.toasts if toast.level == "error"]

    @property
    def successes(self) -> List[str]:
        return [toast.message for toast in self.toasts if toast.level == "success"]


class StreamlitToasts:
    def success(self, message: str) -> None:
        st.toast(message, icon="✅")

    def error(self, message: str) -> None:
        logger.info("Error toast: %s", message)
        st.toast(message, icon="⚠️")
