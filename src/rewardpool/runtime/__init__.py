"""Runtime plumbing: errors, clock, config, dispatch, logging and metrics."""
