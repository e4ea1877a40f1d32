"""Pool accounting: accumulator state, accrual engine and its collaborators."""
