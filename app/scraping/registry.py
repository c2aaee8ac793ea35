"""
Parser class registry and factory.
"""

from __future__ import annotations

import importlib
from collections.abc import Mapping

from app.scraping.base import SourceParser
from app.scraping.config.models import SourceDescriptor
from app.scraping.errors import ConfigurationError
from app.scraping.fetcher import FetchNode
from app.scraping.parsers import MenuPageParser, NiagaraParser


class ParserRegistry:
    """
    Parser registry supporting built-in kinds and dynamic import paths.
    """

    def __init__(self, registrations: Mapping[str, type[SourceParser]] | None = None) -> None:
        builtins: dict[str, type[SourceParser]] = {
            "menu_page": MenuPageParser,
            "niagara": NiagaraParser,
        }
        if registrations:
            builtins.update({kind.strip().lower(): cls for kind, cls in registrations.items()})
        self._registrations = builtins

    def register(self, *, parser_kind: str, parser_class: type[SourceParser]) -> None:
        self._registrations[parser_kind.strip().lower()] = parser_class

    def kinds(self) -> list[str]:
        return sorted(self._registrations)

    def knows(self, parser_kind: str) -> bool:
        return parser_kind.strip().lower() in self._registrations

    def create_parser(
        self,
        *,
        descriptor: SourceDescriptor,
        fetch_node: FetchNode,
    ) -> SourceParser:
        parser_class = self.resolve_parser_class(descriptor)
        return parser_class(descriptor=descriptor, fetch_node=fetch_node)

    def resolve_parser_class(self, descriptor: SourceDescriptor) -> type[SourceParser]:
        if descriptor.parser_class:
            return self._load_dynamic_class(descriptor.parser_class)

        resolved = self._registrations.get(descriptor.parser_kind.strip().lower())
        if resolved is None:
            allowed = ", ".join(self.kinds())
            raise ConfigurationError(
                f"Unknown parser kind '{descriptor.parser_kind}' for source '{descriptor.id}'. "
                f"Allowed kinds: {allowed}."
            )
        return resolved

    @staticmethod
    def _load_dynamic_class(path: str) -> type[SourceParser]:
        if ":" not in path:
            raise ConfigurationError(f"Invalid parser_class '{path}'. Use 'module.path:ClassName'.")

        module_path, class_name = path.split(":", 1)
        try:
            module = importlib.import_module(module_path)
        except ImportError as exc:
            raise ConfigurationError(f"Unable to import parser module '{module_path}'.") from exc
        loaded = getattr(module, class_name, None)
        if loaded is None:
            raise ConfigurationError(f"Unable to resolve parser class '{path}'.")
        if not isinstance(loaded, type) or not issubclass(loaded, SourceParser):
            raise ConfigurationError(f"Class '{path}' must inherit from SourceParser.")
        return loaded
