"""School route optimization and live trip monitoring backend."""
