"""Pure domain helpers: clock, fiscal calendar, payload parsing, deadlines."""
