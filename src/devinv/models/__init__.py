"""ORM models that live outside :mod:`devinv.database`."""
