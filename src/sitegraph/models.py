import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Front matter date formats, e.g. "2024-3-7T09:15:00AM" and "2024-3-7".
DATE_FORMAT = "%Y-%m-%dT%I:%M:%S%p"
LASTMOD_FORMAT = "%Y-%m-%d"


class PageMeta(BaseModel):
    """Typed view over a page's front matter.

    Unknown keys are kept and available through ``model_extra``.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    title: str = ""
    summary: str = ""
    date: dt.datetime | None = None
    lastmod: dt.date | None = None
    draft: bool = False
    tags: list[str] = Field(default_factory=list)
    template: str | None = None
    template_params: dict[str, Any] | None = Field(default=None, alias="templateParams")
    assets: list[str] | None = None
    layout: str | None = None

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        if isinstance(value, str):
            return dt.datetime.strptime(value.strip(), DATE_FORMAT)
        if isinstance(value, dt.date) and not isinstance(value, dt.datetime):
            return dt.datetime.combine(value, dt.time())
        return value

    @field_validator("lastmod", mode="before")
    @classmethod
    def _parse_lastmod(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        if isinstance(value, str):
            return dt.datetime.strptime(value.strip(), LASTMOD_FORMAT).date()
        if isinstance(value, dt.datetime):
            return value.date()
        return value

    @property
    def extra(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class PageTemplate(BaseModel):
    """Which template file (and block within it) renders a page."""

    name: str = ""
    entry: str = ""
    params: dict[str, Any] = Field(default_factory=dict)


class TocEntry(BaseModel):
    level: int
    text: str
    anchor: str
    children: list["TocEntry"] = Field(default_factory=list)


TocEntry.model_rebuild()  # necessary for recursive types
