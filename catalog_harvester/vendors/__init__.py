"""Vendor registry."""

from .st import STVendor
from .ti import TIVendor

ALL_VENDORS = {
    "ti": TIVendor,
    "st": STVendor,
}
