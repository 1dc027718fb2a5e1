"""Read-modify-write helpers for the Danta app content TOML file."""

from __future__ import annotations

from typing import List

import tomlkit
from pydantic import ValidationError
from tomlkit.exceptions import TOMLKitError
from tomlkit.items import AoT, Array
from tomlkit.toml_document import TOMLDocument

from .models import Banner, BannerValidationError

BANNERS_KEY = "banners"


class BannerConfigDocument:
    """Wrap a parsed TOML document, keeping its comments and layout on write."""

    def __init__(self, document: TOMLDocument) -> None:
        self._document = document

    @classmethod
    def parse(cls, text: str) -> "BannerConfigDocument":
        try:
            document = tomlkit.parse(text)
        except TOMLKitError as exc:
            raise BannerValidationError(f"config file is not valid TOML: {exc}") from exc
        entries = document.get(BANNERS_KEY)
        if entries is not None and not isinstance(entries, (AoT, Array)):
            raise BannerValidationError(f"'{BANNERS_KEY}' must be an array of tables")
        if isinstance(entries, Array) and any(not isinstance(item, dict) for item in entries):
            raise BannerValidationError(f"'{BANNERS_KEY}' must be an array of tables")
        return cls(document)

    @property
    def banners(self) -> List[Banner]:
        entries = self._document.get(BANNERS_KEY) or []
        banners: List[Banner] = []
        for entry in entries:
            try:
                banners.append(Banner.model_validate(dict(entry)))
            except ValidationError:
                continue
        return banners

    def contains(self, banner: Banner) -> bool:
        key = (banner.title, banner.action, banner.button)
        return any((entry.title, entry.action, entry.button) == key for entry in self.banners)

    def append_banner(self, banner: Banner) -> None:
        entries = self._document.get(BANNERS_KEY)
        if isinstance(entries, Array) and len(entries) > 0:
            inline = tomlkit.inline_table()
            inline.update({"title": banner.title, "action": banner.action, "button": banner.button})
            entries.append(inline)
            return
        if isinstance(entries, Array):
            # an empty inline array cannot hold [[banners]] headers in place
            del self._document[BANNERS_KEY]
            entries = None
        if entries is None:
            entries = tomlkit.aot()
            self._document.append(BANNERS_KEY, entries)
        table = tomlkit.table()
        table.add("title", banner.title)
        table.add("action", banner.action)
        table.add("button", banner.button)
        # blank line before whatever table follows the new entry
        table.add(tomlkit.nl())
        entries.append(table)

    def dumps(self) -> str:
        return tomlkit.dumps(self._document)
