"""Hours registry engine: calendar grids, day summaries, drafts and exports."""
