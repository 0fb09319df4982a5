"""WritArcade comic engine - turns articles into choice-driven illustrated stories"""

__version__ = "0.1.0"
