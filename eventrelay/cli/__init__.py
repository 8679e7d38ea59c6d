"""eventrelay command line interface."""
