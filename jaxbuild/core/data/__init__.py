"""Static data tables (compute capability catalog, compiler flags)."""
