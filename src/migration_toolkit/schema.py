"""Declarative helpers shared by the source and the target schema."""

from __future__ import annotations

from typing import Tuple


class IdentityPrintMixin:
    """Adds ``identity_print()``, used to name records in handbook references."""

    __identity_fields__: Tuple[str, ...] = ()

    def identity_print(self) -> str:
        # Reads the instance dict directly: printing must never trigger a load,
        # records are also printed after their session was rolled back.
        values = self.__dict__
        fields = ", ".join(
            f"{name}={values.get(name)!r}" for name in self.__identity_fields__
        )
        return f"{type(self).__name__}({fields})"
