from typing import Any, Protocol


class FrontMatterParser(Protocol):
    def __call__(self, raw: bytes) -> tuple[dict[str, Any], bytes]: ...
