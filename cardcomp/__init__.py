"""CardComp — sold-listing comps and value estimates for trading cards."""

__version__ = "0.1.0"
