from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Sample:
    """Opaque biometric sample (an encoded still image)."""

    data: bytes = field(repr=False)
    content_type: str = "image/jpeg"
    captured_at: Optional[datetime] = None
    device: Optional[str] = None

    @property
    def filename(self) -> str:
        ext = self.content_type.rsplit("/", 1)[-1] if "/" in self.content_type else "bin"
        return f"sample.{'jpg' if ext == 'jpeg' else ext}"
