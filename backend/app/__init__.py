"""Personal running dashboard backend."""
