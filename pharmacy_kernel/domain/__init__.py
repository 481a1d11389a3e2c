"""Pure domain code: no database access, no I/O except SystemClock."""
