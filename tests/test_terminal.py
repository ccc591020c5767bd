"""Tests for sshsession.terminal.Terminal."""

import pytest

from sshsession import DimensionUnit, IllegalStateError, InvalidArgumentError, Terminal
from sshsession.config import ClientSettings


class TestDefaults:
    def test_defaults(self):
        term = Terminal.create()
        assert term.get_width() == 80
        assert term.get_height() == 25
        assert term.get_dimension_units() is DimensionUnit.CHARS
        assert term.get_env() == {}

    def test_from_settings(self):
        settings = ClientSettings(term_width=132, term_height=43, dimension_units="pixels")
        term = Terminal.from_settings(settings)
        assert (term.get_width(), term.get_height()) == (132, 43)
        assert term.get_dimension_units() is DimensionUnit.PIXELS


class TestDimensionUnits:
    @pytest.mark.parametrize("units", ["", "char", "Chars", "px", "inches"])
    def test_unknown_unit_raises(self, units):
        with pytest.raises(InvalidArgumentError, match="chars, pixels"):
            Terminal.create().dimension_units(units)

    def test_set_once_then_idempotent(self):
        term = Terminal.create().dimension_units("chars").dimension_units("chars")
        assert term.get_dimension_units() is DimensionUnit.CHARS

    def test_change_raises_illegal_state(self):
        term = Terminal.create().dimension_units("chars")
        with pytest.raises(IllegalStateError):
            term.dimension_units("pixels")
        assert term.get_dimension_units() is DimensionUnit.CHARS

    def test_width_locks_unit(self):
        term = Terminal.create().width(640, "pixels").height(480)
        assert term.get_dimension_units() is DimensionUnit.PIXELS
        with pytest.raises(IllegalStateError):
            term.height(25, "chars")
        # the height itself was still applied
        assert term.get_height() == 25

    def test_unset_unit_can_still_be_chosen(self):
        term = Terminal.create().width(100)
        term.height(40, "pixels")
        assert term.get_dimension_units() is DimensionUnit.PIXELS


class TestEnv:
    def test_single_and_mapping(self):
        term = Terminal.create().env("LANG", "C").env({"TZ": "UTC", "LANG": "en_US.UTF-8"})
        assert term.get_env() == {"LANG": "en_US.UTF-8", "TZ": "UTC"}

    def test_get_env_is_a_copy(self):
        term = Terminal.create().env("A", "1")
        term.get_env()["B"] = "2"
        assert term.get_env() == {"A": "1"}
