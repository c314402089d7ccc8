"""User preferences used when repairing files"""
import os
import json
import logging

from dataclasses import dataclass
from typing import List, Optional, Union

from mgftools.const import CHARGE_RANGE_ENV, DEFAULT_MIN_CHARGE, DEFAULT_MAX_CHARGE


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


@dataclass(frozen=True)
class ChargeRangePreferences:
    """
    The range of precursor charges assumed for spectra which do not state one.

    Attributes
    ----------
    min_charge : int
        The smallest charge, at least 1
    max_charge : int
        The largest charge, at least :attr:`min_charge`
    """

    min_charge: int = DEFAULT_MIN_CHARGE
    max_charge: int = DEFAULT_MAX_CHARGE

    def __post_init__(self):
        if self.min_charge < 1:
            raise ValueError(f"The minimum charge must be at least 1, got {self.min_charge}")
        if self.min_charge > self.max_charge:
            raise ValueError(
                f"The minimum charge {self.min_charge} is larger than the maximum charge {self.max_charge}")

    @property
    def charges(self) -> List[int]:
        return list(range(self.min_charge, self.max_charge + 1))

    @classmethod
    def parse(cls, value: str) -> 'ChargeRangePreferences':
        """Read a range written as ``"2-4"``, or a single charge ``"2"``"""
        parts = value.strip().split("-")
        try:
            if len(parts) == 1:
                return cls(int(parts[0]), int(parts[0]))
            if len(parts) == 2:
                return cls(int(parts[0]), int(parts[1]))
        except ValueError:
            raise ValueError(f"Cannot parse charge range {value!r}") from None
        raise ValueError(f"Cannot parse charge range {value!r}")

    @classmethod
    def load(cls, path: Optional[Union[str, os.PathLike]] = None) -> 'ChargeRangePreferences':
        """
        Load the preferences.

        Parameters
        ----------
        path : str, optional
            A JSON document with ``min_charge`` and ``max_charge`` keys.
            When omitted, the :envvar:`MGFTOOLS_CHARGE_RANGE` environment
            variable is read instead, and the defaults are used if it is
            not set.

        Returns
        -------
        ChargeRangePreferences

        Raises
        ------
        ValueError
            If the range is not valid
        """
        if path is not None:
            with open(path, "rt", encoding="utf8") as fh:
                state = json.load(fh)
            logger.debug("Loaded charge range preferences from %s", path)
            return cls(
                int(state.get("min_charge", DEFAULT_MIN_CHARGE)),
                int(state.get("max_charge", DEFAULT_MAX_CHARGE)),
            )
        value = os.environ.get(CHARGE_RANGE_ENV)
        if value:
            logger.debug("Read charge range preferences %r from %s", value, CHARGE_RANGE_ENV)
            return cls.parse(value)
        return cls()

    def to_dict(self) -> dict:
        return {"min_charge": self.min_charge, "max_charge": self.max_charge}
