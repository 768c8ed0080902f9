"""Model identifiers: construction, string form and parsing."""

import hashlib
import re
from dataclasses import dataclass

from nlu.errors import InvalidModelIdError

SAFE_NAME = re.compile(r"^[A-Za-z0-9_-]+$")
_SEPARATOR = "."


def halfmd5(text: str) -> str:
    """First half of the md5 hex digest, enough to fingerprint content."""
    digest = hashlib.md5(text.encode("utf-8")).hexdigest()
    return digest[: len(digest) // 2]


@dataclass(frozen=True)
class ModelId:
    """Identifies one trained artifact of a bot for a language."""
    bot_id: str
    language_code: str
    specification_hash: str
    content_hash: str
    seed: int

    def __post_init__(self):
        for field_name in ("bot_id", "language_code", "specification_hash", "content_hash"):
            value = getattr(self, field_name)
            if not value or not SAFE_NAME.match(value):
                raise InvalidModelIdError(
                    f"Model id field {field_name} has invalid value {value!r}"
                )

    def to_string(self) -> str:
        return _SEPARATOR.join([
            self.bot_id,
            self.content_hash,
            self.specification_hash,
            str(self.seed),
            self.language_code,
        ])

    @property
    def brief(self) -> str:
        """Short form for log lines."""
        return f"{self.bot_id}.{self.content_hash[:8]}.{self.language_code}"

    @classmethod
    def from_string(cls, value: str) -> "ModelId":
        parts = value.split(_SEPARATOR)
        if len(parts) != 5:
            raise InvalidModelIdError(f"Model id {value!r} is not well formed")

        bot_id, content_hash, specification_hash, seed, language_code = parts
        try:
            seed_value = int(seed)
        except ValueError:
            raise InvalidModelIdError(
                f"Model id {value!r} has a non-numeric seed"
            ) from None

        return cls(
            bot_id=bot_id,
            language_code=language_code,
            specification_hash=specification_hash,
            content_hash=content_hash,
            seed=seed_value,
        )

    def __str__(self) -> str:
        return self.to_string()
