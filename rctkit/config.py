"""Command-line options from argv and rc files, typed by their defaults."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import IO, Any, Callable, Iterable, Sequence

Validator = Callable[[Any], bool]

_MISSING = object()
_TYPE_NAMES = {bool: "boolean", int: "integer", float: "double", str: "string"}
_TRUE_WORDS = frozenset({"true", "1", "yes", "on"})
_FALSE_WORDS = frozenset({"false", "0", "no", "off"})


class ConfigError(ValueError):
    """Raised when the command line cannot be parsed or a value is invalid."""


def _kind_of(value: Any) -> type:
    if isinstance(value, bool):
        return bool
    if isinstance(value, int):
        return int
    if isinstance(value, float):
        return float
    return str


def _convert(text: str, kind: type) -> Any:
    if kind is bool:
        word = text.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        raise ValueError(text)
    return kind(text)


@dataclass
class _Option:
    name: str | None
    description: str
    short: str | None
    default: Any
    kind: type
    validator: Validator | None
    is_list: bool = False
    list_count: int = 0
    value: Any = None
    count: int = 0

    @property
    def takes_argument(self) -> bool:
        return self.is_list or self.kind is not bool


def _rc_arguments(paths: Iterable[str | os.PathLike[str]]) -> list[str]:
    args: list[str] = []
    for path in paths:
        try:
            with open(path, encoding="utf-8") as handle:
                lines = handle.read().splitlines()
        except OSError:
            continue
        for line in lines:
            line = line.lstrip()
            if line.startswith("#"):
                continue
            parts = [part for part in line.split(" ") if part]
            if not parts:
                continue
            first = parts[0]
            if len(first) == 1 or (len(first) > 2 and first[1] == "="):
                parts[0] = "-" + first
            else:
                parts[0] = "--" + first
            args.extend(parts)
    return args


class Config:
    """A set of registered options filled in by ``parse``."""

    def __init__(self) -> None:
        self._options: list[_Option] = []
        self.allows_free_args = False
        self._free_args: list[str] = []
        self._program = os.path.basename(sys.argv[0]) if sys.argv else ""

    @property
    def free_args(self) -> list[str]:
        """Arguments that were not options, in order."""
        return list(self._free_args)

    def register_option(
        self,
        name: str | None,
        description: str,
        short_option: str | None = None,
        default: Any = None,
        validator: Validator | None = None,
    ) -> None:
        """Add an option whose type is that of ``default``; booleans take no argument."""
        self._options.append(
            _Option(name, description, short_option or None, default, _kind_of(default), validator)
        )

    def register_list_option(
        self,
        name: str,
        description: str,
        short_option: str | None = None,
        default: Sequence[Any] | None = None,
        validator: Validator | None = None,
        list_count: int = 0,
        value_type: type | None = None,
    ) -> None:
        """Add an option taking several values; ``list_count`` fixes how many (0: any)."""
        default = list(default or [])
        if value_type is None:
            value_type = _kind_of(default[0]) if default else str
        self._options.append(
            _Option(
                name,
                description,
                short_option or None,
                default,
                value_type,
                validator,
                is_list=True,
                list_count=list_count,
            )
        )

    def _find(self, name: str) -> _Option | None:
        for option in self._options:
            if option.name == name or (len(name) == 1 and option.short == name):
                return option
        return None

    def _named(self) -> list[_Option]:
        return [option for option in self._options if option.name]

    def _long(self, name: str) -> _Option:
        named = self._named()
        for option in named:
            if option.name == name:
                return option
        matches = [option for option in named if option.name.startswith(name)]
        if len(matches) == 1:
            return matches[0]
        if matches:
            raise ConfigError(f"option '--{name}' is ambiguous")
        raise ConfigError(f"unrecognized option '--{name}'")

    def _short(self, letter: str) -> _Option:
        for option in self._named():
            if option.short == letter:
                return option
        raise ConfigError(f"invalid option -- '{letter}'")

    def _value_of(self, option: _Option, text: str) -> Any:
        try:
            return _convert(text, option.kind)
        except ValueError:
            raise ConfigError(
                f'"{text}" can not be converted to "{_TYPE_NAMES[option.kind]}" for {option.name}'
            ) from None

    def _validate(self, option: _Option) -> None:
        if option.validator is None:
            return
        message = ""
        try:
            ok = option.validator(option.value)
        except ValueError as exc:
            ok, message = False, str(exc)
        if not ok:
            option.value = None
            raise ConfigError(message or f"Invalid value for {option.name}")

    def _assign(self, option: _Option, text: str, args: list[str], index: int) -> int:
        value = self._value_of(option, text)
        if option.is_list:
            values = [value]
            while (
                index < len(args)
                and not args[index].startswith("-")
                and (not option.list_count or len(values) < option.list_count)
            ):
                values.append(self._value_of(option, args[index]))
                index += 1
            option.value = values
            if option.list_count and len(values) != option.list_count:
                raise ConfigError(
                    f"Too few values specified for {option.name}. "
                    f"Wanted {option.list_count}, got {len(values)}"
                )
        else:
            option.value = value
        self._validate(option)
        return index

    def parse(
        self,
        argv: Sequence[str] | None = None,
        rc_files: Iterable[str | os.PathLike[str]] = (),
    ) -> None:
        """Fill options from ``rc_files`` lines and then ``argv``; raise ConfigError on error."""
        if argv is None:
            argv = sys.argv
        argv = list(argv)
        if argv:
            self._program = os.path.basename(argv[0])
        args = argv[:1] + _rc_arguments(rc_files) + argv[1:]
        self._free_args = []
        index = 1
        while index < len(args):
            arg = args[index]
            index += 1
            if arg == "--":
                self._free_args.extend(args[index:])
                break
            if arg.startswith("--"):
                name, has_value, attached = arg[2:].partition("=")
                option = self._long(name)
                option.count += 1
                if not option.takes_argument:
                    if has_value:
                        raise ConfigError(f"option '--{option.name}' doesn't allow an argument")
                    option.value = not option.default
                    continue
                if not has_value:
                    if index >= len(args):
                        raise ConfigError(f"option '--{option.name}' requires an argument")
                    attached = args[index]
                    index += 1
                index = self._assign(option, attached, args, index)
            elif arg.startswith("-") and len(arg) > 1:
                letters = arg[1:]
                for position, letter in enumerate(letters):
                    option = self._short(letter)
                    option.count += 1
                    if not option.takes_argument:
                        option.value = not option.default
                        continue
                    attached = letters[position + 1:]
                    if attached:
                        if attached.startswith("="):
                            attached = attached[1:]
                    else:
                        if index >= len(args):
                            raise ConfigError(f"option requires an argument -- '{letter}'")
                        attached = args[index]
                        index += 1
                    index = self._assign(option, attached, args, index)
                    break
            else:
                self._free_args.append(arg)
        if not self.allows_free_args and self._free_args:
            raise ConfigError("Unexpected free args")

    def is_enabled(self, name: str) -> int:
        """How often a set option was given, or 0 if it is unset or false."""
        option = self._find(name)
        if option is not None and option.value:
            return option.count
        return 0

    def value(self, name: str, default: Any = _MISSING) -> Any:
        """The option's parsed value, else ``default``, else its registered default."""
        option = self._find(name)
        if option is not None and option.value is not None:
            return option.value
        if default is not _MISSING:
            return default
        if option is None:
            raise KeyError(name)
        return list(option.default) if option.is_list else option.default

    def show_help(self, file: IO[str] | None = None) -> None:
        """Write a usage listing of all options to ``file`` (stdout by default)."""
        if file is None:
            file = sys.stdout
        lines: list[str] = []
        for option in self._options:
            if not option.name and not option.short:
                lines.append("")
                continue
            lines.append(
                "  "
                + (f"--{option.name}" if option.name else "")
                + ("|" if option.name and option.short else "")
                + (f"-{option.short}" if option.short else "")
                + (" [arg] " if option.takes_argument else "")
            )
        longest = max((len(line) for line in lines), default=0)
        file.write(f"{self._program} options...\n")
        for line, option in zip(lines, self._options):
            if not line:
                file.write(f"{option.description}\n")
            else:
                file.write(f"{line}{' ' * (longest - len(line))} {option.description}\n")

    def clear(self) -> None:
        """Forget all options and free arguments."""
        self._options.clear()
        self.allows_free_args = False
        self._free_args.clear()