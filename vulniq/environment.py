"""The two isolated environments a request or object can belong to."""
from __future__ import annotations

from enum import Enum


class Environment(str, Enum):
    PROD = "prod"
    DEMO = "demo"

    @classmethod
    def parse(cls, value: "Environment | str") -> "Environment":
        """Accept an Environment or its tag; anything else is a ValueError."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown environment {value!r}; expected 'prod' or 'demo'") from None

    @classmethod
    def for_request(cls, is_demo_mode: bool) -> "Environment":
        return cls.DEMO if is_demo_mode else cls.PROD
