"""
Virtual terminal settings requested when opening exec and shell channels.
"""

from __future__ import annotations
from typing import Mapping, Optional, Union

from .config import ClientSettings
from .exceptions import IllegalStateError, InvalidArgumentError
from .transport.base import DimensionUnit


class Terminal:
    """
    Width, height, dimension unit and environment of a virtual terminal.

    Builder-style: every setter returns self.

        term = Terminal.create().width(132, "chars").height(50).env("LANG", "C")

    The dimension unit can be set once. Setting it again to the same value
    is a no-op; changing it raises IllegalStateError.
    """

    DEFAULT_WIDTH = 80
    DEFAULT_HEIGHT = 25
    DEFAULT_DIMENSION_UNITS = DimensionUnit.CHARS

    def __init__(self):
        self._width = self.DEFAULT_WIDTH
        self._height = self.DEFAULT_HEIGHT
        self._env: dict[str, str] = {}
        self._dimension_units: Optional[DimensionUnit] = None

    @classmethod
    def create(cls) -> Terminal:
        return cls()

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> Terminal:
        """Terminal with the configured default size (and unit, if configured)."""
        terminal = cls().width(settings.term_width).height(settings.term_height)
        if settings.dimension_units:
            terminal.dimension_units(settings.dimension_units)
        return terminal

    @staticmethod
    def get_dimension_units_id(dimension_units: str) -> DimensionUnit:
        """
        Resolve a unit name.

        Raises:
            InvalidArgumentError: if the name is not "chars" or "pixels"
        """
        try:
            return DimensionUnit(dimension_units)
        except ValueError:
            choices = ", ".join(u.value for u in DimensionUnit)
            raise InvalidArgumentError(
                f'Incorrect dimension unit "{dimension_units}". You must use one of [{choices}]'
            ) from None

    def dimension_units(self, dimension_units: str) -> Terminal:
        """
        Set the unit that width and height are given in.

        Raises:
            InvalidArgumentError: unknown unit name
            IllegalStateError: unit already fixed to a different value
        """
        candidate = self.get_dimension_units_id(dimension_units)

        if self._dimension_units is None:
            self._dimension_units = candidate
        elif self._dimension_units is not candidate:
            raise IllegalStateError(
                f"You cannot change dimension units. "
                f"They have already been set to {self._dimension_units.value}"
            )
        return self

    def width(self, width: int, dimension_units: Optional[str] = None) -> Terminal:
        self._width = width
        if dimension_units is not None:
            self.dimension_units(dimension_units)
        return self

    def height(self, height: int, dimension_units: Optional[str] = None) -> Terminal:
        self._height = height
        if dimension_units is not None:
            self.dimension_units(dimension_units)
        return self

    def env(self, key: Union[str, Mapping[str, str]], value: Optional[str] = None) -> Terminal:
        """Add one variable, or merge a mapping. Later values win."""
        if isinstance(key, Mapping):
            self._env.update(key)
        else:
            self._env[key] = value
        return self

    def get_width(self) -> int:
        return self._width

    def get_height(self) -> int:
        return self._height

    def get_env(self) -> dict[str, str]:
        return dict(self._env)

    def get_dimension_units(self) -> DimensionUnit:
        return self._dimension_units or self.DEFAULT_DIMENSION_UNITS

    def __repr__(self) -> str:
        return (
            f"Terminal({self._width}x{self._height} "
            f"{self.get_dimension_units().value}, env={sorted(self._env)})"
        )
